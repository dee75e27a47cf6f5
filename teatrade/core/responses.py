"""
Response envelopes shared by the routers
"""
import math
from typing import Any, Dict, List, Optional


def success_response(data: Any, message: Optional[str] = None) -> Dict[str, Any]:
    response = {"status": "success", "data": data}
    if message:
        response["message"] = message
    return response


def error_response(message: str, details: Any = None) -> Dict[str, Any]:
    response = {"status": "error", "message": message}
    if details is not None:
        response["details"] = details
    return response


def paginated_response(items: List[Any], page: int, limit: int, total: int) -> Dict[str, Any]:
    """Wrap one page of results with its pagination metadata"""
    return {
        "data": items,
        "meta": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": math.ceil(total / limit) if limit else 0,
        },
    }

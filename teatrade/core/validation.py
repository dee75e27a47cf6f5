"""
Request validation gate

A ``RequestSchema`` bundles optional pydantic models for the JSON body,
the query string and the path parameters. ``validate(schema)`` turns it
into a FastAPI dependency: on success the handler receives the parsed
models, on failure the request is answered with

    400 {"status": "fail", "message": "<error>, <error>, ..."}

and the handler never runs.
"""
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Type

from fastapi import Request
from pydantic import BaseModel, ValidationError

FAIL_STATUS = "fail"


class ValidationFailed(Exception):
    """Raised by the gate; rendered as a 400 by the exception handlers"""

    def __init__(self, messages: List[str]):
        self.messages = messages
        super().__init__(", ".join(messages))

    @property
    def message(self) -> str:
        return ", ".join(self.messages)

    def to_response(self) -> Dict[str, str]:
        return {"status": FAIL_STATUS, "message": self.message}


@dataclass(frozen=True)
class RequestSchema:
    """Expected shapes of a request; parts left as None are not checked"""
    body: Optional[Type[BaseModel]] = None
    query: Optional[Type[BaseModel]] = None
    params: Optional[Type[BaseModel]] = None


@dataclass
class ValidatedRequest:
    """Parsed request parts handed to the route handler"""
    body: Optional[BaseModel] = None
    query: Optional[BaseModel] = None
    params: Optional[BaseModel] = None


def format_error(error: Mapping[str, Any]) -> str:
    """
    Render one pydantic error as a user-facing message.

    Messages raised by our own validators (``ValueError("Name is required")``)
    are used verbatim; built-in errors are prefixed with the field path.
    """
    ctx = error.get("ctx") or {}
    if error.get("type") == "value_error" and "error" in ctx:
        return str(ctx["error"])

    field = ".".join(str(part) for part in error.get("loc", ()))
    if error.get("type") == "missing":
        return f"{field} is required" if field else "Value is required"
    return f"{field}: {error.get('msg')}" if field else str(error.get("msg"))


def check_request(schema: RequestSchema, body: Any = None,
                  query: Optional[Mapping[str, Any]] = None,
                  params: Optional[Mapping[str, Any]] = None) -> ValidatedRequest:
    """
    Validate every part the schema describes and collect all errors.

    Raises:
        ValidationFailed: with one message per violated field
    """
    result = ValidatedRequest()
    messages: List[str] = []

    parts = (
        ("body", schema.body, body if body is not None else {}),
        ("query", schema.query, dict(query or {})),
        ("params", schema.params, dict(params or {})),
    )
    for name, model, data in parts:
        if model is None:
            continue
        try:
            setattr(result, name, model.model_validate(data))
        except ValidationError as e:
            messages.extend(format_error(err) for err in e.errors())

    if messages:
        raise ValidationFailed(messages)
    return result


def _query_to_dict(request: Request) -> Dict[str, Any]:
    # Repeated keys (?ids=1&ids=2) become lists
    data: Dict[str, Any] = {}
    for key, value in request.query_params.multi_items():
        if key in data:
            existing = data[key]
            data[key] = existing + [value] if isinstance(existing, list) else [existing, value]
        else:
            data[key] = value
    return data


async def _read_json_body(request: Request) -> Any:
    raw = await request.body()
    if not raw or not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationFailed(["Malformed JSON body"])


def validate(schema: RequestSchema):
    """
    Dependency factory for the validation gate.

    Usage:
        @router.post("/")
        def create(validated: ValidatedRequest = Depends(validate(CREATE_SCHEMA))):
            payload = validated.body
    """
    async def validation_gate(request: Request) -> ValidatedRequest:
        body = await _read_json_body(request) if schema.body is not None else None
        return check_request(
            schema,
            body=body,
            query=_query_to_dict(request),
            params=request.path_params,
        )

    return validation_gate

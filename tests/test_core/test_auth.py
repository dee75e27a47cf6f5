"""
Unit tests for Cognito ID token verification and the auth dependencies

Tokens are signed with a throwaway RSA key; the JWKS document is served
through ``httpx.MockTransport`` so no network access is needed.
"""
import inspect
import time

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi import HTTPException
from jose import jwk, jwt

from teatrade.core.auth import (
    CognitoTokenVerifier,
    InvalidTokenError,
    get_current_user,
    user_from_claims,
)

ISSUER = "https://cognito-idp.us-east-1.amazonaws.com/us-east-1_test"
JWKS_URL = f"{ISSUER}/.well-known/jwks.json"
AUDIENCE = "test-client"
KID = "key-1"


@pytest.fixture(scope="module")
def signing_key():
    """
    RSA key pair as PEM bytes

    Scope: module (key generation is slow)
    """
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return private_pem, public_pem


@pytest.fixture
def jwks_server(signing_key):
    """Mock JWKS endpoint that counts how often it is hit"""
    _, public_pem = signing_key
    public_jwk = jwk.construct(public_pem, "RS256").to_dict()
    public_jwk["kid"] = KID
    state = {"calls": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        state["calls"] += 1
        assert str(request.url) == JWKS_URL
        return httpx.Response(200, json={"keys": [public_jwk]})

    state["client"] = httpx.Client(transport=httpx.MockTransport(handler))
    yield state
    state["client"].close()


@pytest.fixture
def clock():
    """Manually advanced monotonic clock"""
    state = {"now": 1000.0}

    def _clock():
        return state["now"]

    _clock.state = state
    return _clock


@pytest.fixture
def verifier(jwks_server, clock):
    return CognitoTokenVerifier(
        jwks_url=JWKS_URL,
        issuer=ISSUER,
        audience=AUDIENCE,
        http_client=jwks_server["client"],
        min_refetch_interval=60,
        clock=clock,
    )


@pytest.fixture
def make_token(signing_key):
    """Sign a token; keyword arguments override the default claims"""
    private_pem, _ = signing_key

    def _make_token(kid: str = KID, **overrides) -> str:
        now = int(time.time())
        claims = {
            "sub": "user-sub-0001",
            "aud": AUDIENCE,
            "iss": ISSUER,
            "token_use": "id",
            "email": "buyer@example.com",
            "cognito:username": "buyer",
            "custom:role": "user",
            "iat": now,
            "exp": now + 3600,
        }
        claims.update(overrides)
        return jwt.encode(claims, private_pem, algorithm="RS256", headers={"kid": kid})

    return _make_token


class TestCognitoTokenVerifier:
    """Test signature, claim and key-cache handling"""

    def test_valid_id_token(self, verifier, make_token, jwks_server):
        # Arrange
        token = make_token()

        # Act
        claims = verifier.verify(token)

        # Assert
        assert claims["sub"] == "user-sub-0001"
        assert claims["email"] == "buyer@example.com"
        assert jwks_server["calls"] == 1

    def test_keys_are_cached(self, verifier, make_token, jwks_server):
        verifier.verify(make_token())
        verifier.verify(make_token())

        assert jwks_server["calls"] == 1

    def test_wrong_audience_is_rejected(self, verifier, make_token):
        with pytest.raises(InvalidTokenError):
            verifier.verify(make_token(aud="another-client"))

    def test_wrong_issuer_is_rejected(self, verifier, make_token):
        with pytest.raises(InvalidTokenError):
            verifier.verify(make_token(iss="https://issuer.example.com"))

    def test_expired_token_is_rejected(self, verifier, make_token):
        past = int(time.time()) - 7200

        with pytest.raises(InvalidTokenError):
            verifier.verify(make_token(iat=past, exp=past + 60))

    def test_access_token_is_rejected(self, verifier, make_token):
        with pytest.raises(InvalidTokenError) as exc_info:
            verifier.verify(make_token(token_use="access"))

        assert str(exc_info.value) == "ID token required"

    def test_garbage_token_is_rejected(self, verifier):
        with pytest.raises(InvalidTokenError):
            verifier.verify("not-a-jwt")

    def test_unknown_kid_inside_interval_is_not_refetched(self, verifier, make_token, jwks_server):
        # Arrange: populate the cache
        verifier.verify(make_token())

        # Act
        with pytest.raises(InvalidTokenError) as exc_info:
            verifier.verify(make_token(kid="rotated"))

        # Assert: cache was fresh, so no second fetch inside the interval
        assert str(exc_info.value) == "Unknown signing key"
        assert jwks_server["calls"] == 1

    def test_unknown_kids_do_not_refetch_within_interval(self, verifier, make_token, jwks_server, clock):
        # Arrange
        verifier.verify(make_token())
        clock.state["now"] += 61

        # Act
        for kid in ("forged-1", "forged-2", "forged-3"):
            with pytest.raises(InvalidTokenError):
                verifier.verify(make_token(kid=kid))

        # Assert: one refetch after the interval elapsed, then throttled
        assert jwks_server["calls"] == 2

    def test_unreachable_jwks_is_invalid_token(self, make_token):
        def handler(request):
            return httpx.Response(503)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        verifier = CognitoTokenVerifier(JWKS_URL, ISSUER, AUDIENCE, http_client=client)

        with pytest.raises(InvalidTokenError) as exc_info:
            verifier.verify(make_token())

        assert "Unable to fetch signing keys" in str(exc_info.value)
        client.close()


class TestUserFromClaims:
    """Test mapping claims onto TokenUser"""

    def test_role_is_lowercased(self):
        user = user_from_claims({"sub": "s1", "custom:role": "Admin", "email": "a@example.com"})

        assert user.id == "s1"
        assert user.role == "admin"
        assert user.email == "a@example.com"

    def test_missing_role_defaults_to_user(self):
        assert user_from_claims({"sub": "s1"}).role == "user"

    def test_non_string_role_is_forbidden(self):
        with pytest.raises(HTTPException) as exc_info:
            user_from_claims({"sub": "s1", "custom:role": ["admin"]})

        assert exc_info.value.status_code == 403


class TestAuthDependency:
    """Test the bearer-token dependency through the application"""

    def test_dependency_runs_in_threadpool(self):
        assert not inspect.iscoroutinefunction(get_current_user)

    def test_valid_token_is_accepted(self, client, verifier, make_token):
        # Arrange
        client.app.state.token_verifier = verifier

        # Act
        response = client.get("/stocks", headers={"Authorization": f"Bearer {make_token()}"})

        # Assert
        assert response.status_code == 200
        assert response.json()["meta"]["total"] == 0

    def test_missing_token(self, client):
        response = client.get("/stocks")

        assert response.status_code == 401
        assert response.json()["detail"] == "Unauthorized: No token provided"

    def test_invalid_token(self, client, verifier, make_token):
        client.app.state.token_verifier = verifier

        response = client.get(
            "/stocks", headers={"Authorization": f"Bearer {make_token(aud='another-client')}"}
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Unauthorized: Invalid or expired token"

    def test_role_gate_uses_token_role(self, client, verifier, make_token):
        client.app.state.token_verifier = verifier

        response = client.delete(
            "/stocks", headers={"Authorization": f"Bearer {make_token()}"}
        )

        assert response.status_code == 403

"""Shared pytest fixtures for test suite."""

import os

# Settings refuse to load without Supabase secrets; set test values before
# any crushquest module is imported.
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import base64  # noqa: E402
import json  # noqa: E402
import time  # noqa: E402
from unittest.mock import MagicMock  # noqa: E402

import pytest  # noqa: E402
from cryptography.hazmat.backends import default_backend  # noqa: E402
from cryptography.hazmat.primitives import serialization  # noqa: E402
from cryptography.hazmat.primitives.asymmetric import rsa  # noqa: E402
from fastapi import Request  # noqa: E402
from jose import jwt  # noqa: E402

# =============================================================================
# RSA Key Fixtures (for RS256 JWT signing/verification)
# =============================================================================


@pytest.fixture(scope="session")
def rsa_key_pair():
    """
    Generate RSA key pair for testing RS256 JWTs.

    Session-scoped for efficiency - keys are expensive to generate.
    """
    private_key = rsa.generate_private_key(
        public_exponent=65537, key_size=2048, backend=default_backend()
    )
    return private_key, private_key.public_key()


@pytest.fixture(scope="session")
def rsa_private_key_pem(rsa_key_pair):
    """PEM-encoded private key for signing JWTs."""
    private_key, _ = rsa_key_pair
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture(scope="session")
def jwks_key_id() -> str:
    """Key ID (kid) used in test JWKS."""
    return "test-key-id-001"


@pytest.fixture(scope="session")
def test_jwks(rsa_key_pair, jwks_key_id):
    """JWKS built from the test public key, shaped like Supabase's endpoint."""
    _, public_key = rsa_key_pair
    public_numbers = public_key.public_numbers()

    def int_to_base64url(value: int, length: int) -> str:
        value_bytes = value.to_bytes(length, byteorder="big")
        return base64.urlsafe_b64encode(value_bytes).rstrip(b"=").decode("ascii")

    return {
        "keys": [
            {
                "kty": "RSA",
                "use": "sig",
                "alg": "RS256",
                "kid": jwks_key_id,
                "n": int_to_base64url(public_numbers.n, 256),
                "e": int_to_base64url(public_numbers.e, 3),
            }
        ]
    }


# =============================================================================
# JWT Token Fixtures
# =============================================================================


@pytest.fixture
def valid_jwt_claims():
    """Standard valid JWT claims for a Supabase authenticated user."""
    return {
        "sub": "viewer-uuid-12345",
        "email": "viewer@example.com",
        "aud": "authenticated",
        "role": "authenticated",
        "iat": int(time.time()),
        "exp": int(time.time()) + 3600,
    }


def create_test_jwt(claims: dict, private_key_pem: bytes, kid: str) -> str:
    """Sign `claims` with the test key."""
    return jwt.encode(claims, private_key_pem, algorithm="RS256", headers={"kid": kid})


@pytest.fixture
def valid_jwt_token(valid_jwt_claims, rsa_private_key_pem, jwks_key_id):
    return create_test_jwt(valid_jwt_claims, rsa_private_key_pem, jwks_key_id)


@pytest.fixture
def expired_jwt_token(valid_jwt_claims, rsa_private_key_pem, jwks_key_id):
    claims = valid_jwt_claims.copy()
    claims["exp"] = int(time.time()) - 3600
    claims["iat"] = int(time.time()) - 7200
    return create_test_jwt(claims, rsa_private_key_pem, jwks_key_id)


@pytest.fixture
def wrong_audience_jwt_token(valid_jwt_claims, rsa_private_key_pem, jwks_key_id):
    claims = valid_jwt_claims.copy()
    claims["aud"] = "anon"
    return create_test_jwt(claims, rsa_private_key_pem, jwks_key_id)


# =============================================================================
# Mock Request Fixtures
# =============================================================================


@pytest.fixture
def mock_request():
    """Create a mock FastAPI Request object."""
    request = MagicMock(spec=Request)
    request.state = MagicMock()
    request.headers = {}
    return request


@pytest.fixture
def mock_request_authenticated(mock_request):
    """Mock request with an authenticated viewer in state (post-middleware)."""
    from crushquest.core.auth import OptionalViewer

    mock_request.state.viewer = OptionalViewer(
        user_id="viewer-uuid-12345", email="viewer@example.com", is_authenticated=True
    )
    mock_request.state.token_error = None
    return mock_request


@pytest.fixture
def mock_request_unauthenticated(mock_request):
    """Mock request with an anonymous viewer in state."""
    from crushquest.core.auth import OptionalViewer

    mock_request.state.viewer = OptionalViewer()
    mock_request.state.token_error = None
    return mock_request


# =============================================================================
# Cache isolation
# =============================================================================


@pytest.fixture(autouse=True)
def reset_auth_caches():
    """Reset JWKS and deleted-user caches before each test."""
    import crushquest.core.auth as auth_module

    auth_module._jwks_cache.invalidate()
    auth_module._deleted_user_cache = auth_module.DeletedUserCache()
    yield
    auth_module._jwks_cache.invalidate()


@pytest.fixture
def no_cache(monkeypatch):
    """Relationship cache always misses. Writes and deletes report success."""
    import crushquest.services.relationship_service as module

    monkeypatch.setattr(module, "cache_get", lambda key: None)
    monkeypatch.setattr(module, "cache_set", lambda key, value, ttl=None: True)
    deleted = MagicMock(return_value=True)
    monkeypatch.setattr(module, "cache_delete", deleted)
    return deleted


class MemoryCache:
    """Dict-backed stand-in for the Redis relationship cache."""

    def __init__(self):
        self.entries: dict = {}
        self.fail_writes = False

    def get(self, key):
        raw = self.entries.get(key)
        return None if raw is None else json.loads(raw)

    def set(self, key, value, ttl=None):
        if self.fail_writes:
            return False
        self.entries[key] = json.dumps(value, default=str)
        return True

    def delete(self, *keys):
        if self.fail_writes:
            return False
        for key in keys:
            self.entries.pop(key, None)
        return True


@pytest.fixture
def memory_cache(monkeypatch):
    """Relationship cache backed by a dict. Set fail_writes to simulate Redis errors."""
    import crushquest.services.relationship_service as module

    cache = MemoryCache()
    monkeypatch.setattr(module, "cache_get", cache.get)
    monkeypatch.setattr(module, "cache_set", cache.set)
    monkeypatch.setattr(module, "cache_delete", cache.delete)
    return cache

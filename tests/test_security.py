from datetime import timedelta

import pytest
from fastapi import HTTPException
from jose import JWTError, jwt

from backend.security import (
    ALGORITHM, create_access_token, decode_access_token, get_bearer_token, get_password_hash, verify_password
)


def test_password_hash():
    """Test password hashing and verification."""
    password = "testpassword"
    hashed = get_password_hash(password)

    assert hashed != password
    assert verify_password(password, hashed)
    assert not verify_password("wrongpassword", hashed)


def test_access_token_round_trip():
    """Claims survive encoding and the token carries an expiry."""
    token = create_access_token({"sub": "user-1", "email": "test@example.com"}, timedelta(minutes=30))

    assert isinstance(token, str)
    claims = decode_access_token(token)
    assert claims["sub"] == "user-1"
    assert claims["email"] == "test@example.com"
    assert "exp" in claims


def test_expired_token_is_rejected():
    token = create_access_token({"sub": "user-1"}, timedelta(minutes=-1))

    with pytest.raises(JWTError):
        decode_access_token(token)


def test_foreign_token_is_rejected():
    token = jwt.encode({"sub": "user-1"}, "some-other-secret", algorithm=ALGORITHM)

    with pytest.raises(JWTError):
        decode_access_token(token)


@pytest.mark.asyncio
async def test_missing_bearer_token_is_unauthorized():
    with pytest.raises(HTTPException) as exc_info:
        await get_bearer_token(None)

    assert exc_info.value.status_code == 401
    assert await get_bearer_token("abc") == "abc"

from app.core.auth.security import hash_password, verify_password, create_access_token, decode_access_token, generate_refresh_token, hash_refresh_token
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch
from fastapi import HTTPException
from fastapi.testclient import TestClient
from jose import JWTError, jwt
import pytest
import uuid

from app.core.auth import service as auth_service
from app.core.auth.models import RefreshToken, User
from app.dependencies import get_db
from app.main import app
from app.settings import get_settings


def test_password_hash_roundtrip():
    plain = "MyS3cure!Pass"
    hashed = hash_password(plain)
    assert verify_password(plain, hashed)
    assert not verify_password("wrong", hashed)


def test_verify_password_with_malformed_hash():
    assert verify_password("anything", "not-a-bcrypt-hash") is False


def test_access_token_roundtrip():
    user_id = uuid.uuid4()
    claims = decode_access_token(create_access_token(user_id))
    assert claims.user_id == user_id
    assert claims.expires_at > datetime.now(timezone.utc)


def test_access_token_rejects_other_types():
    settings = get_settings()
    token = jwt.encode({"sub": str(uuid.uuid4()), "type": "refresh"}, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    with pytest.raises(JWTError):
        decode_access_token(token)


def test_access_token_rejects_non_uuid_subject():
    settings = get_settings()
    expires = datetime.now(timezone.utc) + timedelta(minutes=5)
    token = jwt.encode({"sub": "admin", "type": "access", "exp": expires}, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    with pytest.raises(JWTError):
        decode_access_token(token)


def test_expired_access_token_rejected():
    issued = datetime.now(timezone.utc) - timedelta(days=1)
    with pytest.raises(JWTError):
        decode_access_token(create_access_token(uuid.uuid4(), issued))


def test_refresh_token_hash():
    raw, hashed = generate_refresh_token()
    assert hashed == hash_refresh_token(raw)


def _session_with_token(token: RefreshToken | None):
    db = AsyncMock()
    db.add = MagicMock()
    result = MagicMock()
    result.scalar_one_or_none.return_value = token
    db.execute.return_value = result
    return db


def _stored_token(user_id: uuid.UUID) -> RefreshToken:
    return RefreshToken(
        user_id=user_id,
        token_hash=hash_refresh_token("raw-token"),
        expires_at=datetime.now(timezone.utc) + timedelta(days=1),
        revoked_at=None,
    )


async def test_refresh_rotates_token_for_active_user():
    user = User(id=uuid.uuid4(), email="a@example.com", status="active")
    token = _stored_token(user.id)
    db = _session_with_token(token)

    with patch.object(auth_service, "get_user", AsyncMock(return_value=user)):
        result = await auth_service.refresh_tokens(db, "raw-token")

    assert token.revoked_at is not None
    assert decode_access_token(result.access_token).user_id == user.id
    issued = db.add.call_args.args[0]
    assert issued.token_hash == hash_refresh_token(result.refresh_token)


@pytest.mark.parametrize("user", [None, User(email="s@example.com", status="suspended")])
async def test_refresh_refused_for_inactive_or_deleted_user(user):
    token = _stored_token(uuid.uuid4())
    db = _session_with_token(token)

    with patch.object(auth_service, "get_user", AsyncMock(return_value=user)):
        with pytest.raises(HTTPException) as exc:
            await auth_service.refresh_tokens(db, "raw-token")

    assert exc.value.status_code == 401
    assert token.revoked_at is None
    db.add.assert_not_called()


async def test_refresh_with_revoked_token():
    token = _stored_token(uuid.uuid4())
    token.revoked_at = datetime.now(timezone.utc)
    with pytest.raises(HTTPException) as exc:
        await auth_service.refresh_tokens(_session_with_token(token), "raw-token")
    assert exc.value.status_code == 401


@pytest.fixture
def auth_client():
    async def override_db():
        yield AsyncMock()

    app.dependency_overrides[get_db] = override_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_signup(auth_client, monkeypatch):
    user = User(
        id=uuid.uuid4(), email="new@example.com", full_name="New Owner", status="active",
        is_superadmin=False, created_at=datetime.now(timezone.utc),
    )
    create_user = AsyncMock(return_value=user)
    monkeypatch.setattr(auth_service, "get_user_by_email", AsyncMock(return_value=None))
    monkeypatch.setattr(auth_service, "create_user", create_user)

    resp = auth_client.post("/auth/signup", json={"email": "New@Example.com", "password": "longenough1", "full_name": "New Owner"})

    assert resp.status_code == 201
    assert resp.json()["email"] == "new@example.com"
    assert create_user.await_args.args[1].password == "longenough1"


def test_signup_duplicate_email(auth_client, monkeypatch):
    monkeypatch.setattr(auth_service, "get_user_by_email", AsyncMock(return_value=User(email="dup@example.com")))

    resp = auth_client.post("/auth/signup", json={"email": "dup@example.com", "password": "longenough1"})

    assert resp.status_code == 409


def test_signup_rejects_short_password(auth_client):
    resp = auth_client.post("/auth/signup", json={"email": "x@example.com", "password": "short"})
    assert resp.status_code == 422

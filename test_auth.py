import pytest
import datetime
import mongomock
from cryptography.fernet import Fernet
from jose import jwt

import config
from modules import auth

# Fixture: mongomock database, signing keys for the test run
@pytest.fixture(autouse=True)
def setup_test_environment(monkeypatch):
    mock_client = mongomock.MongoClient()
    test_db = mock_client['test_database']
    monkeypatch.setattr("config.db", test_db)
    monkeypatch.setattr("config.SECRET_KEY", "test-secret")
    monkeypatch.setenv("FERNET_KEY", Fernet.generate_key().decode())
    yield test_db

def _register(email="amine@kerya.dz", phone="0551234567", role="renter"):
    return auth.register_user("Amine Benali", email, "strong_password", phone, role)

# The stored password is neither the clear text nor a bare bcrypt hash
def test_password_round_trip():
    stored = auth.hash_password("strong_password")
    assert "strong_password" not in stored
    assert not stored.startswith("$2")
    assert auth.check_password("strong_password", stored)
    assert not auth.check_password("wrong", stored)

def test_register_user():
    user_id, error = _register()
    assert error is None
    user = config.db.users.find_one({"email": "amine@kerya.dz"})
    assert str(user["_id"]) == user_id
    assert user["role"] == "renter"
    assert user["is_suspended"] is False

def test_register_duplicates():
    _register()
    assert _register()[1] == "This email is already registered."
    assert _register(email="other@kerya.dz")[1] == "This phone number is already registered."

def test_register_rejects_admin_and_bad_email():
    assert _register(role="admin")[0] is None
    assert _register(email="not-an-email")[0] is None
    assert config.db.users.count_documents({}) == 0

def test_authenticate():
    _register()
    assert auth.authenticate("amine@kerya.dz", "strong_password") is not None
    assert auth.authenticate("amine@kerya.dz", "wrong") is None
    assert auth.authenticate("nobody@kerya.dz", "strong_password") is None

def test_suspended_user_cannot_log_in():
    _register()
    config.db.users.update_one({"email": "amine@kerya.dz"}, {"$set": {"is_suspended": True}})
    assert auth.authenticate("amine@kerya.dz", "strong_password") is None

def test_token_round_trip():
    user_id, _ = _register(role="agency_owner")
    user = config.db.users.find_one({"email": "amine@kerya.dz"})
    token = auth.create_user_token(user)

    payload = jwt.decode(token, "test-secret", algorithms=[auth.ALGORITHM])
    assert payload["sub"] == user_id
    assert payload["role"] == "agency_owner"

    loaded = auth.user_from_token(token)
    assert str(loaded["_id"]) == user_id
    assert "password" not in loaded

def test_invalid_tokens():
    _register()
    user = config.db.users.find_one({"email": "amine@kerya.dz"})
    assert auth.user_from_token("garbage") is None

    expired = jwt.encode(
        {"sub": str(user["_id"]), "exp": datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(minutes=1)},
        "test-secret",
        algorithm=auth.ALGORITHM,
    )
    assert auth.user_from_token(expired) is None

    # Tokens of suspended users are no longer honoured
    token = auth.create_user_token(user)
    config.db.users.update_one({"_id": user["_id"]}, {"$set": {"is_suspended": True}})
    assert auth.user_from_token(token) is None

# Admin password reset hands back a working temporary password
def test_reset_user_password():
    user_id, _ = _register()
    admin_id = config.db.users.insert_one({"full_name": "Admin", "email": "admin@kerya.dz", "role": "admin"}).inserted_id

    assert auth.reset_user_password(user_id, user_id).error.code == "forbidden"
    result = auth.reset_user_password(user_id, admin_id)
    assert result.ok
    temporary_password = result.data["temporary_password"]
    assert auth.authenticate("amine@kerya.dz", temporary_password) is not None
    assert auth.authenticate("amine@kerya.dz", "strong_password") is None
    assert auth.reset_user_password("not-an-id", admin_id).error.code == "not_found"

import os
import time
import secrets
import datetime
import logging

import bcrypt
import streamlit as st
from cryptography.fernet import Fernet
from jose import JWTError, jwt
from pydantic import ValidationError
from pymongo.errors import PyMongoError

import config
from models.user_model import UserModel
from models.rpc_result import RpcResult
from modules.rpc import find_by_id, rpc
from utils import sanitize_input

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
TOKEN_LIFETIME = datetime.timedelta(hours=60)

ROLE_OPTIONS = {
    "I want to rent a vehicle": "renter",
    "I run a rental agency": "agency_owner",
}

def _cipher():
    return Fernet(os.environ.get("FERNET_KEY").encode())

def encrypt_data(data):
    """Encrypt a string with Fernet."""
    return _cipher().encrypt(data.encode()).decode()

def decrypt_data(encrypted_data):
    """Decrypt a Fernet-encrypted string."""
    return _cipher().decrypt(encrypted_data.encode()).decode()

def hash_password(password):
    # bcrypt hash, then encrypted once more before it is stored
    hashed_pw = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt())
    return encrypt_data(hashed_pw.decode())

def check_password(password, stored_password):
    decrypted_password = decrypt_data(stored_password)
    return bcrypt.checkpw(password.encode('utf-8'), decrypted_password.encode('utf-8'))

def register_user(full_name, email, password, phone, role="renter"):
    """Create an account. Returns (user_id, error_message)."""
    try:
        user = UserModel(full_name=full_name, email=email, password=password, phone=phone, role=role)
    except ValidationError as e:
        logger.warning(f"Registration rejected: {e}")
        return None, "Please check the information you entered."
    if user.role == "admin":
        return None, "Administrator accounts cannot be created from this form."

    users = config.db.users
    if users.find_one({"email": user.email}):
        return None, "This email is already registered."
    if users.find_one({"phone": user.phone}):
        return None, "This phone number is already registered."

    document = user.model_dump()
    document["password"] = hash_password(password)
    document["created_at"] = datetime.datetime.now()
    try:
        user_id = users.insert_one(document).inserted_id
    except PyMongoError as e:
        logger.error(f"Registration failed: {e}")
        return None, "Registration failed, please try again later."
    logger.info(f"User {user_id} registered as {user.role}")
    return str(user_id), None

def authenticate(email, password):
    """The user document for valid credentials, else None."""
    user = config.db.users.find_one({"email": email})
    if user and check_password(password, user["password"]):
        if user.get("is_suspended"):
            logger.warning(f"Login refused for suspended user {user['_id']}")
            return None
        logger.info("Login succeeded.")
        return user
    logger.warning("Login failed: wrong email or password.")
    return None

@rpc
def reset_user_password(user_id, admin_id):
    """Give a user a temporary password, returned once to the administrator who reset it."""
    admin = find_by_id("users", admin_id)
    if not admin or admin.get("role") != "admin":
        return RpcResult.failure("forbidden", "Administrator access is required.")
    user = find_by_id("users", user_id)
    if not user:
        return RpcResult.failure("not_found", "User not found.")
    temporary_password = secrets.token_urlsafe(9)
    config.db.users.update_one({"_id": user["_id"]}, {"$set": {"password": hash_password(temporary_password)}})
    logger.info(f"Password of user {user_id} reset by {admin_id}")
    return RpcResult.success({"temporary_password": temporary_password})

def create_user_token(user):
    expire = datetime.datetime.now(datetime.timezone.utc) + TOKEN_LIFETIME
    to_encode = {"sub": str(user["_id"]), "role": user.get("role", "renter"), "exp": expire}
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=ALGORITHM)

def user_from_token(user_token):
    """The user behind a valid, unexpired token; suspended users are rejected."""
    try:
        payload = jwt.decode(user_token, config.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.error(f"Token verification failed: {e}")
        return None
    user_id = payload.get("sub")
    if not user_id:
        return None
    user = find_by_id("users", user_id)
    if not user or user.get("is_suspended"):
        return None
    user.pop("password", None)
    return user

def register():
    st.subheader("Sign up")
    account_type = st.radio("Account type", list(ROLE_OPTIONS.keys()))
    full_name = sanitize_input(st.text_input("Full name"))
    email = sanitize_input(st.text_input("Email"))
    password = st.text_input("Password", type="password")
    phone = sanitize_input(st.text_input("Phone number"))

    if st.button("Create account"):
        if not (full_name and email and password and phone):
            st.error("Please fill in every field!")
            return
        if len(password) < 8:
            st.error("The password must be at least 8 characters long.")
            return
        user_id, error = register_user(full_name, email, password, phone, ROLE_OPTIONS[account_type])
        if error:
            st.error(error)
            return
        st.success("Account created! Redirecting to the login page...")
        time.sleep(2)
        st.session_state['login_form_submitted'] = True
        st.rerun()

def update_user_info(session):
    st.subheader("My profile")
    user_data = config.db.users.find_one({"email": session.email})
    if not user_data:
        st.error("User not found.")
        return

    with st.form(key='update_form'):
        full_name = sanitize_input(st.text_input("Full name", value=user_data.get('full_name', '')))
        phone = sanitize_input(st.text_input("Phone number", value=user_data.get('phone', '')))
        new_password = st.text_input("New password (optional)", type="password")
        update_button = st.form_submit_button(label="Save")

    if update_button:
        updated_data = {"full_name": full_name, "phone": phone}
        if new_password:
            if len(new_password) < 8:
                st.error("The password must be at least 8 characters long.")
                return
            updated_data["password"] = hash_password(new_password)
        config.db.users.update_one({"_id": user_data['_id']}, {"$set": updated_data})
        session.full_name = full_name
        logger.info(f"Profile updated for user {user_data['_id']}")
        st.success("Your profile has been updated.")

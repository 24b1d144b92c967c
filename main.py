import os
import streamlit as st
st.set_page_config(page_title="Kerya - Car rental", layout="wide")

import time
import datetime
import logging
from pymongo.errors import PyMongoError
from streamlit_cookies_manager import EncryptedCookieManager

import config
from modules import rpc
from modules.admin import admin_dashboard
from modules.agency import agency_dashboard, onboarding
from modules.auth import authenticate, create_user_token, hash_password, register, user_from_token
from modules.locations import ensure_default_wilayas
from modules.renter import renter_dashboard
from modules.session import current_session, end_session, start_session

logger = logging.getLogger(__name__)

def create_default_admin():
    """Create the administrator account from ADMIN_EMAIL / ADMIN_PASSWORD if it does not exist."""
    admin_email = os.getenv("ADMIN_EMAIL")
    admin_password = os.getenv("ADMIN_PASSWORD")
    if not admin_email or not admin_password:
        return

    if config.db.users.find_one({"email": admin_email, "role": "admin"}):
        logger.info("Administrator account already exists.")
        return
    config.db.users.insert_one({
        "full_name": "Administrator",
        "email": admin_email,
        "password": hash_password(admin_password),
        "phone": os.getenv("ADMIN_PHONE", ""),
        "role": "admin",
        "is_suspended": False,
        "created_at": datetime.datetime.now(),
    })
    logger.info("Default administrator account created.")

def clear_all_cookies(cookie_manager):
    for key in list(cookie_manager.keys()):
        del cookie_manager[key]
    cookie_manager.save()

def load_session(user, user_token):
    """Session for a verified user, reloading the agency so approvals show up immediately."""
    agency = None
    if user.get("role") == "agency_owner":
        result = rpc.get_agency_for_owner(user["_id"])
        if result.ok:
            agency = result.data
    session = current_session()
    if session and session.user_id == str(user["_id"]) and session.token == user_token:
        session.agency = agency
        return session
    return start_session(user, user_token, agency)

def route(session):
    if session.is_admin:
        admin_dashboard(session)
    elif session.is_agency_owner:
        if session.agency_verified:
            agency_dashboard(session)
        else:
            onboarding(session)
    else:
        renter_dashboard(session)

def main():
    st.title("Kerya")

    try:
        create_default_admin()
        ensure_default_wilayas()
    except PyMongoError as e:
        logger.error(f"MongoDB unreachable: {e}")
        st.error("Cannot connect to the database. Please check `system.log`.")
        st.stop()

    cookie_manager = EncryptedCookieManager(prefix="kerya/", password=config.COOKIE_PASSWORD)
    if not cookie_manager.ready():
        st.stop()

    user_token = cookie_manager.get("user_token")

    if user_token:
        user = user_from_token(user_token)
        if user:
            session = load_session(user, user_token)
            route(session)

            if st.sidebar.button("Log out"):
                end_session()
                clear_all_cookies(cookie_manager)
                time.sleep(0.5)
                st.success("You are logged out.")
                st.rerun()
        else:
            st.warning("Your session has expired or is invalid. Please log in again.")
            end_session()
            clear_all_cookies(cookie_manager)
            time.sleep(0.5)
            st.rerun()
    else:
        show_login_register_forms(cookie_manager)

def show_login_register_forms(cookie_manager):
    menu = ["Log in", "Sign up"]

    # Go straight to the login form after a successful sign up
    if st.session_state.get('login_form_submitted'):
        choice = "Log in"
        st.session_state['login_form_submitted'] = False
    else:
        choice = st.sidebar.selectbox("Menu", menu, key="menu_auth")

    if choice == "Sign up":
        register()
    elif choice == "Log in":
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        if st.button("Log in"):
            user = authenticate(email, password)
            if user:
                cookie_manager["user_token"] = create_user_token(user)
                cookie_manager.save()
                st.success("Logged in!")
                st.rerun()
            else:
                st.error("Wrong email or password, or the account is suspended.")

if __name__ == '__main__':
    main()

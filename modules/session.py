"""Explicit session context.

An AppSession is built once the JWT cookie has been verified, stored under a
single session_state key and handed to every page. Logging out tears it down.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

import streamlit as st

logger = logging.getLogger(__name__)

SESSION_KEY = "app_session"


@dataclass
class AppSession:
    user_id: str
    full_name: str
    email: str
    role: str
    token: str
    agency: Optional[dict] = field(default=None)

    @property
    def is_admin(self):
        return self.role == "admin"

    @property
    def is_agency_owner(self):
        return self.role == "agency_owner"

    @property
    def agency_verified(self):
        return bool(self.agency) and self.agency.get("verification_status") == "verified"

    @classmethod
    def from_user(cls, user, token, agency=None):
        return cls(
            user_id=str(user["_id"]),
            full_name=user.get("full_name", ""),
            email=user.get("email", ""),
            role=user.get("role", "renter"),
            token=token,
            agency=agency,
        )


def start_session(user, token, agency=None):
    session = AppSession.from_user(user, token, agency)
    st.session_state[SESSION_KEY] = session
    logger.info(f"Session started for user {session.user_id} ({session.role})")
    return session


def current_session():
    return st.session_state.get(SESSION_KEY)


def end_session():
    """Drop the session and every page state that belonged to it."""
    session = st.session_state.get(SESSION_KEY)
    for key in list(st.session_state.keys()):
        del st.session_state[key]
    if session:
        logger.info(f"Session ended for user {session.user_id}")

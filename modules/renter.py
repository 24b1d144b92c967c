import streamlit as st
from modules.auth import update_user_info
from modules.booking import bookings, list_user_bookings, show_confirmation
from modules.messages import messages_page

def renter_dashboard(session):
    st.subheader(f"Welcome, {session.full_name}")
    menu = ["Rent a vehicle", "My bookings", "Messages", "My profile"]
    choice = st.sidebar.selectbox("Menu", menu, key="menu_renter")

    if choice == "Rent a vehicle":
        show_confirmation(session)
        bookings(session)
    elif choice == "My bookings":
        list_user_bookings(session)
    elif choice == "Messages":
        messages_page(session)
    elif choice == "My profile":
        update_user_info(session)

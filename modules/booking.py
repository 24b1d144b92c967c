import streamlit as st
import datetime
import logging

from modules import rpc
from modules.booking_status import (
    Actor,
    BookingStatus,
    available_actions,
    can_review,
    progress_percent,
    status_label,
)
from modules.invoice import build_invoice_pdf
from modules.pricing import quote_booking, validate_date_range
from modules.vehicle import search_vehicles, vehicle_title
from utils import format_dzd, sanitize_input

logger = logging.getLogger(__name__)

PAYMENT_METHODS = {"Cash at pickup": "cash", "Card": "card"}

def bookings(session):
    """Search, then book the selected vehicle."""
    selection = search_vehicles()
    if selection:
        vehicle, start_date, end_date = selection
        st.session_state['booking_selection'] = {
            "vehicle_id": str(vehicle["_id"]),
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
        }

    if st.session_state.get('booking_selection'):
        create_booking(session, st.session_state['booking_selection'])

def _show_quote(quote):
    st.write(f"Rental period: **{quote['rental_days']} day(s)**")
    st.write(f"Daily rate: {format_dzd(quote['daily_rate'])}")
    st.write(f"Total price: **{format_dzd(quote['total_price'])}**")

def create_booking(session, selection):
    st.header("Book this vehicle")
    vehicle = rpc.find_by_id("vehicles", selection["vehicle_id"])
    if not vehicle:
        st.error("This vehicle no longer exists.")
        del st.session_state['booking_selection']
        return

    start_date = datetime.date.fromisoformat(selection["start_date"])
    end_date = datetime.date.fromisoformat(selection["end_date"])
    error = validate_date_range(start_date, end_date)
    if error:
        st.error(error)
        return

    st.subheader(vehicle_title(vehicle))
    st.write(f"From {start_date} to {end_date}")
    # Same estimate as the one stored with the booking
    _show_quote(quote_booking(start_date, end_date, vehicle["daily_rate_dzd"]))

    unavailable = rpc.get_unavailable_dates_for_vehicle(vehicle["_id"])
    if unavailable.ok and unavailable.data:
        with st.expander("Dates already booked"):
            for interval in unavailable.data:
                st.write(f"{interval['start_date']} → {interval['end_date']}")

    with st.form(key="booking_form"):
        payment_label = st.radio("Payment method", list(PAYMENT_METHODS.keys()))
        submit_booking = st.form_submit_button("Confirm booking")

    if submit_booking:
        result = rpc.create_booking(
            session.user_id,
            vehicle["_id"],
            start_date,
            end_date,
            payment_method=PAYMENT_METHODS[payment_label],
        )
        if not result.ok:
            st.error(result.error.message)
            return
        del st.session_state['booking_selection']
        st.session_state['last_booking'] = result.data
        st.rerun()

def show_confirmation(session):
    confirmation = st.session_state.get('last_booking')
    if not confirmation:
        return
    st.success("Your booking is confirmed!")
    _show_quote(confirmation)
    _invoice_button(session, confirmation["booking_id"], key="confirmation_invoice")
    if st.button("Close"):
        del st.session_state['last_booking']
        st.rerun()

def _invoice_button(session, booking_id, key):
    details = rpc.get_booking_details(booking_id, session.user_id)
    if not details.ok:
        st.error(details.error.message)
        return
    try:
        pdf = build_invoice_pdf(details.data)
    except ValueError as e:
        logger.warning(f"Invoice for booking {booking_id} not generated: {e}")
        st.warning("Sorry, the invoice is not available for this booking.")
        return
    st.download_button(
        label="Download invoice",
        data=pdf,
        file_name=f"invoice-kerya-{booking_id}.pdf",
        mime="application/pdf",
        key=key,
    )

def list_user_bookings(session):
    st.subheader("My bookings")
    result = rpc.list_user_bookings(session.user_id)
    if not result.ok:
        st.error(result.error.message)
        return
    if not result.data:
        st.write("You have no bookings yet.")
        return

    for booking in result.data:
        booking_id = str(booking["_id"])
        with st.container(border=True):
            st.write(f"**{vehicle_title(booking.get('vehicle'))}** - {booking['start_date']} → {booking['end_date']}")
            st.write(f"Total: {format_dzd(booking.get('total_price'))} · Payment: {booking.get('payment_method', 'cash')}")
            st.write(f"Status: {status_label(booking.get('status'))}")
            if booking.get("status") == BookingStatus.CANCELLED.value:
                st.write(f"Cancellation reason: {booking.get('cancellation_reason') or '-'}")
            else:
                st.progress(progress_percent(booking.get("status")) / 100)

            col1, col2, col3 = st.columns(3)
            with col1:
                if BookingStatus.RETURN_REQUESTED.value in available_actions(booking, Actor.RENTER):
                    if st.button("I am returning the vehicle", key=f"return_{booking_id}"):
                        outcome = rpc.request_return(booking_id, session.user_id)
                        if outcome.ok:
                            st.success("Return requested. The agency will confirm it.")
                            st.rerun()
                        else:
                            st.error(outcome.error.message)
            with col2:
                _invoice_button(session, booking_id, key=f"invoice_{booking_id}")
            with col3:
                if st.button("Contact the agency", key=f"contact_{booking_id}"):
                    outcome = rpc.get_or_create_conversation(session.user_id, booking["vehicle_id"])
                    if outcome.ok:
                        st.session_state["open_conversation_id"] = outcome.data["conversation_id"]
                        st.info("Conversation opened, see the Messages page.")
                    else:
                        st.error(outcome.error.message)

            if can_review(booking, booking.get("has_review")):
                review_form(session, booking_id)

def review_form(session, booking_id):
    with st.form(key=f"review_{booking_id}"):
        rating = st.slider("Rating", 1, 5, 5)
        comment = sanitize_input(st.text_area("Comment"))
        submitted = st.form_submit_button("Leave a review")
    if submitted:
        result = rpc.submit_review(booking_id, session.user_id, rating, comment)
        if result.ok:
            st.success("Thank you for your review!")
            st.rerun()
        else:
            st.error(result.error.message)

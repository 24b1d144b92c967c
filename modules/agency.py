import streamlit as st
import pandas as pd
import calendar
import datetime
import logging

from modules import rpc
from modules.admin import export_to_excel
from modules.auth import update_user_info
from modules.booking_status import (
    ACTIVE_STATUSES,
    Actor,
    BookingStatus,
    available_actions,
    status_label,
)
from modules.locations import wilaya_options
from modules.messages import messages_page
from modules.vehicle import manage_vehicles, vehicle_title
from utils import format_dzd, parse_date, sanitize_input

logger = logging.getLogger(__name__)

ACTION_LABELS = {
    BookingStatus.PICKED_UP.value: "Confirm pickup",
    BookingStatus.RETURNED.value: "Confirm return",
}

def agency_dashboard(session):
    st.subheader(f"Agency: {session.agency['agency_name']}")
    menu = ["Dashboard", "Vehicles", "Bookings", "Calendar", "Messages", "Invoice settings", "My profile"]
    choice = st.sidebar.selectbox("Agency menu", menu, key="menu_agency")

    if choice == "Dashboard":
        view_dashboard(session)
    elif choice == "Vehicles":
        manage_vehicles(session)
    elif choice == "Bookings":
        manage_bookings(session)
    elif choice == "Calendar":
        booking_calendar(session)
    elif choice == "Messages":
        messages_page(session)
    elif choice == "Invoice settings":
        invoice_settings(session)
    elif choice == "My profile":
        update_user_info(session)

# ----------------------------------------------------------------------------
# Onboarding
# ----------------------------------------------------------------------------

def onboarding(session):
    """Verification form, shown until an administrator approves the agency."""
    agency = session.agency or {}
    status = agency.get("verification_status")
    if status == "pending":
        st.info("Your application is being reviewed. You will get access to your dashboard once it is approved.")
        return
    if status == "rejected":
        st.error(f"Your application was rejected: {agency.get('rejection_reason') or 'no reason given'}")
        st.write("Please correct your information and apply again.")
    else:
        st.subheader("Register your agency")

    wilaya = agency.get("wilaya")
    wilayas = wilaya_options()
    with st.form(key="agency_application"):
        agency_name = sanitize_input(st.text_input("Agency name", value=agency.get("agency_name", "")))
        address = sanitize_input(st.text_input("Address", value=agency.get("address") or ""))
        city = sanitize_input(st.text_input("City", value=agency.get("city") or ""))
        wilaya = st.selectbox("Wilaya", wilayas, index=wilayas.index(wilaya) if wilaya in wilayas else 0)
        trade_register_number = sanitize_input(st.text_input("Trade register number", value=agency.get("trade_register_number", "")))
        st.caption("Links to your documents")
        trade_register_url = sanitize_input(st.text_input("Trade register", value=agency.get("trade_register_url", "")))
        id_card_url = sanitize_input(st.text_input("ID card", value=agency.get("id_card_url", "")))
        selfie_url = sanitize_input(st.text_input("Selfie holding the ID card", value=agency.get("selfie_url", "")))
        submitted = st.form_submit_button("Submit application")

    if submitted:
        form = {
            "agency_name": agency_name,
            "address": address,
            "city": city,
            "wilaya": wilaya,
            "trade_register_number": trade_register_number,
            "trade_register_url": trade_register_url,
            "id_card_url": id_card_url,
            "selfie_url": selfie_url,
        }
        if not all([agency_name, trade_register_number, trade_register_url, id_card_url, selfie_url]):
            st.error("Please fill in the agency name, trade register number and every document link!")
            return
        result = rpc.submit_agency_application(session.user_id, form)
        if not result.ok:
            st.error(result.error.message)
            return
        refreshed = rpc.get_agency_for_owner(session.user_id)
        if refreshed.ok:
            session.agency = refreshed.data
        st.success("Application submitted!")
        st.rerun()

# ----------------------------------------------------------------------------
# Bookings
# ----------------------------------------------------------------------------

def manage_bookings(session):
    st.subheader("Bookings")
    result = rpc.list_agency_bookings(session.user_id)
    if not result.ok:
        st.error(result.error.message)
        return

    status_filter = st.selectbox(
        "Status",
        ["all"] + [s.value for s in BookingStatus],
        format_func=lambda s: "All" if s == "all" else status_label(s),
    )
    bookings = [b for b in result.data if status_filter == "all" or b.get("status") == status_filter]
    if not bookings:
        st.write("No booking to show.")
        return

    for booking in bookings:
        booking_id = str(booking["_id"])
        renter = booking.get("renter") or {}
        with st.container(border=True):
            st.write(f"**{vehicle_title(booking.get('vehicle'))}** - {booking['start_date']} → {booking['end_date']}")
            st.write(f"Renter: {renter.get('full_name', 'N/A')} ({renter.get('phone', 'N/A')})")
            st.write(f"Total: {format_dzd(booking.get('total_price'))} · Payment: {booking.get('payment_method', 'cash')}")
            st.write(f"Status: {status_label(booking.get('status'))}")
            if booking.get("cancellation_reason"):
                st.write(f"Cancellation reason: {booking['cancellation_reason']}")

            for action in available_actions(booking, Actor.AGENCY):
                if action == BookingStatus.CANCELLED.value:
                    cancel_form(session, booking_id)
                elif st.button(ACTION_LABELS.get(action, status_label(action)), key=f"{action}_{booking_id}"):
                    outcome = rpc.update_booking_status(booking_id, action, session.user_id)
                    if outcome.ok:
                        st.success(f"Booking is now {status_label(action).lower()}.")
                        st.rerun()
                    else:
                        st.error(outcome.error.message)

def cancel_form(session, booking_id):
    with st.expander("Cancel this booking"):
        with st.form(key=f"cancel_{booking_id}"):
            reason = sanitize_input(st.text_area("Reason (shown to the renter)"))
            submitted = st.form_submit_button("Cancel booking")
        if submitted:
            if not reason.strip():
                st.error("Please give a reason for the cancellation.")
                return
            outcome = rpc.cancel_booking(booking_id, reason, session.user_id)
            if outcome.ok:
                st.success("Booking cancelled.")
                st.rerun()
            else:
                st.error(outcome.error.message)

# ----------------------------------------------------------------------------
# Calendar
# ----------------------------------------------------------------------------

def calendar_weeks(bookings, year, month):
    """Weeks (Sunday first) covering the month, each day paired with the active bookings on it."""
    spans = []
    for b in bookings:
        if b.get("status") not in ACTIVE_STATUSES:
            continue
        start, end = parse_date(b.get("start_date")), parse_date(b.get("end_date"))
        if start and end:
            spans.append((start, end, b))

    weeks = []
    for week in calendar.Calendar(firstweekday=calendar.SUNDAY).monthdatescalendar(year, month):
        weeks.append([(day, [b for start, end, b in spans if start <= day <= end]) for day in week])
    return weeks

def booking_calendar(session):
    st.subheader("Booking calendar")
    today = datetime.date.today()
    col1, col2 = st.columns(2)
    with col1:
        year = st.number_input("Year", min_value=2020, max_value=today.year + 2, value=today.year, step=1)
    with col2:
        month = st.selectbox("Month", list(range(1, 13)), index=today.month - 1,
                             format_func=lambda m: calendar.month_name[m])

    result = rpc.list_agency_bookings(session.user_id)
    if not result.ok:
        st.error(result.error.message)
        return

    header = st.columns(7)
    for col, name in zip(header, ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]):
        col.markdown(f"**{name}**")
    for week in calendar_weeks(result.data, int(year), month):
        cols = st.columns(7)
        for col, (day, day_bookings) in zip(cols, week):
            with col:
                if day.month != month:
                    st.caption(str(day.day))
                    continue
                st.write(f"**{day.day}**")
                for b in day_bookings:
                    st.caption(vehicle_title(b.get("vehicle")))

# ----------------------------------------------------------------------------
# Dashboard
# ----------------------------------------------------------------------------

def view_dashboard(session):
    st.subheader("Dashboard")
    result = rpc.get_agency_dashboard(session.user_id)
    if not result.ok:
        st.error(result.error.message)
        return
    stats = result.data

    col1, col2, col3 = st.columns(3)
    col1.metric(label="Listings", value=stats["listings"])
    col2.metric(label="Active rentals", value=stats["active_rentals"])
    col3.metric(label="Occupancy", value=f"{stats['occupancy_rate']:.1f}%")
    col4, col5, col6 = st.columns(3)
    col4.metric(label="Total revenue", value=format_dzd(stats["total_revenue"]))
    col5.metric(label="Revenue per vehicle", value=format_dzd(stats["avg_revenue_per_vehicle"]))
    col6.metric(label="Booked days", value=stats["total_booked_days"])

    st.subheader("Monthly revenue")
    monthly_df = pd.DataFrame(
        [{"Month": m["label"], "Revenue (DZD)": m["revenue"]} for m in stats["monthly_revenue"]]
    )
    # Chronological order, not alphabetical
    monthly_df["Month"] = pd.Categorical(monthly_df["Month"], categories=monthly_df["Month"], ordered=True)
    st.bar_chart(monthly_df.set_index("Month"))

    st.subheader("Top vehicles")
    top_df = pd.DataFrame(
        [{"Vehicle": v["name"], "Revenue (DZD)": v["revenue"]} for v in stats["top_vehicles"]]
    )
    if top_df.empty:
        st.write("No revenue yet.")
    else:
        st.dataframe(top_df, hide_index=True)

    st.subheader("Recent reviews")
    if not stats["recent_reviews"]:
        st.write("No review yet.")
    for review in stats["recent_reviews"]:
        st.write(f"{'★' * review['rating']}{'☆' * (5 - review['rating'])} {review.get('comment') or ''}")

    st.download_button(
        label="Export report (Excel)",
        data=export_to_excel({
            "Summary": pd.DataFrame([
                {"Indicator": "Listings", "Value": stats["listings"]},
                {"Indicator": "Active rentals", "Value": stats["active_rentals"]},
                {"Indicator": "Total revenue (DZD)", "Value": stats["total_revenue"]},
                {"Indicator": "Booked days", "Value": stats["total_booked_days"]},
                {"Indicator": "Occupancy (%)", "Value": round(stats["occupancy_rate"], 1)},
            ]),
            "Monthly revenue": monthly_df.astype({"Month": str}),
            "Top vehicles": top_df,
        }),
        file_name=f"kerya-agency-{datetime.date.today().isoformat()}.xlsx",
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )

# ----------------------------------------------------------------------------
# Invoice settings
# ----------------------------------------------------------------------------

def invoice_settings(session):
    st.subheader("Invoice settings")
    agency = session.agency
    with st.form(key="invoice_settings"):
        logo_url = st.text_input("Logo link", value=agency.get("invoice_logo_url") or "").strip()
        brand_color = st.color_picker("Brand color", value=agency.get("invoice_brand_color") or "#4f46e5")
        # Printed on the PDF as is, not rendered as HTML
        terms = st.text_area("Terms printed at the bottom of invoices", value=agency.get("invoice_terms") or "")
        submitted = st.form_submit_button("Save settings")

    if submitted:
        result = rpc.update_agency_settings(session.user_id, {
            "invoice_logo_url": logo_url,
            "invoice_brand_color": brand_color,
            "invoice_terms": terms,
        })
        if result.ok:
            session.agency = {**agency, **result.data}
            st.success("Invoice settings saved!")
        else:
            st.error(result.error.message)

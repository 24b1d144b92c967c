import streamlit as st
import pandas as pd
import datetime
import logging
from openpyxl import Workbook
from openpyxl.styles import Font, Alignment, Border, Side
from openpyxl.utils.dataframe import dataframe_to_rows
from io import BytesIO

import config
from modules import rpc
from modules.auth import reset_user_password, update_user_info
from modules.booking_status import status_label
from modules.locations import manage_locations
from utils import format_dzd, sanitize_input

logger = logging.getLogger(__name__)

VERIFICATION_LABELS = {"pending": "Pending", "verified": "Verified", "rejected": "Rejected"}

def admin_dashboard(session):
    st.subheader(f"Platform administration: {session.full_name}")
    menu = ["Dashboard", "Agencies", "Users", "Locations", "My profile"]
    # Keep the choice across reruns
    if 'selected_menu' not in st.session_state:
        st.session_state['selected_menu'] = menu[0]

    choice = st.sidebar.selectbox("Admin menu", menu, index=menu.index(st.session_state['selected_menu']), key="menu_admin")
    st.session_state['selected_menu'] = choice

    if choice == "Dashboard":
        view_statistics(session)
    elif choice == "Agencies":
        moderate_agencies(session)
    elif choice == "Users":
        manage_users(session)
    elif choice == "Locations":
        manage_locations(session)
    elif choice == "My profile":
        update_user_info(session)

def view_statistics(session):
    st.subheader("Platform statistics")
    result = rpc.get_platform_dashboard(session.user_id)
    if not result.ok:
        st.error(result.error.message)
        return
    stats = result.data

    col1, col2, col3, col4 = st.columns(4)
    col1.metric(label="Users", value=stats["users"])
    col2.metric(label="Agencies", value=stats["agencies"])
    col3.metric(label="Bookings", value=stats["bookings"])
    col4.metric(label="Listings", value=stats["listings"])

    col5, col6, col7 = st.columns(3)
    col5.metric(label="Revenue", value=format_dzd(stats["revenue"]))
    col6.metric(label=f"Commission ({config.PLATFORM_COMMISSION_RATE:.0%})", value=format_dzd(stats["platform_commission"]))
    col7.metric(label="Verified agencies", value=f"{stats['verification_rate']:.1f}%")

    st.subheader("Agencies by revenue")
    ranking_df = pd.DataFrame([
        {
            "Agency": a.get("agency_name"),
            "Wilaya": a.get("wilaya"),
            "Status": VERIFICATION_LABELS.get(a.get("verification_status"), a.get("verification_status")),
            "Bookings": a["booking_count"],
            "Revenue (DZD)": a["revenue"],
        }
        for a in stats["agency_ranking"]
    ])
    if ranking_df.empty:
        st.write("No agency has registered yet.")
        return
    st.dataframe(ranking_df, hide_index=True)
    st.bar_chart(ranking_df.head(10).set_index("Agency")["Revenue (DZD)"])

    summary_df = pd.DataFrame([
        {"Indicator": "Users", "Value": stats["users"]},
        {"Indicator": "Agencies", "Value": stats["agencies"]},
        {"Indicator": "Bookings", "Value": stats["bookings"]},
        {"Indicator": "Listings", "Value": stats["listings"]},
        {"Indicator": "Revenue (DZD)", "Value": stats["revenue"]},
        {"Indicator": "Platform commission (DZD)", "Value": stats["platform_commission"]},
        {"Indicator": "Verified agencies (%)", "Value": round(stats["verification_rate"], 1)},
    ])
    st.download_button(
        label="Export report (Excel)",
        data=export_to_excel({"Summary": summary_df, "Agency ranking": ranking_df}),
        file_name=f"kerya-platform-{datetime.date.today().isoformat()}.xlsx",
        mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )

def moderate_agencies(session):
    st.subheader("Agency verification")
    status_filter = st.selectbox("Show", ["pending", "rejected", "verified"], format_func=VERIFICATION_LABELS.get)
    agencies = list(config.db.agencies.find({"verification_status": status_filter}).sort("created_at", 1))
    if not agencies:
        st.write("No agency in this state.")
        return

    for agency in agencies:
        agency_id = str(agency["_id"])
        with st.container(border=True):
            st.write(f"**{agency.get('agency_name')}** - {agency.get('city') or ''}, {agency.get('wilaya')}")
            st.write(f"Trade register: {agency.get('trade_register_number')}")
            st.markdown(
                f"[Trade register]({agency.get('trade_register_url')}) · "
                f"[ID card]({agency.get('id_card_url')}) · [Selfie]({agency.get('selfie_url')})"
            )
            if agency.get("rejection_reason"):
                st.write(f"Rejection reason: {agency['rejection_reason']}")

            if status_filter != "verified":
                if st.button("Approve", key=f"approve_{agency_id}"):
                    result = rpc.approve_agency(agency_id, session.user_id)
                    if result.ok:
                        st.success(f"{agency.get('agency_name')} is now verified.")
                        st.rerun()
                    else:
                        st.error(result.error.message)
            if status_filter == "pending":
                with st.form(key=f"reject_{agency_id}"):
                    reason = sanitize_input(st.text_input("Rejection reason"))
                    rejected = st.form_submit_button("Reject")
                if rejected:
                    result = rpc.reject_agency(agency_id, reason, session.user_id)
                    if result.ok:
                        st.success(f"{agency.get('agency_name')} was rejected.")
                        st.rerun()
                    else:
                        st.error(result.error.message)

def manage_users(session):
    st.subheader("Users")
    search = st.text_input("Search by name or email")
    result = rpc.search_users(session.user_id, search)
    if not result.ok:
        st.error(result.error.message)
        return
    if not result.data:
        st.write("No user found.")
        return

    for user in result.data:
        cols = st.columns([3, 2, 1, 1])
        with cols[0]:
            st.write(f"{user.get('full_name')} - {user.get('email')}")
        with cols[1]:
            state = "suspended" if user.get("is_suspended") else "active"
            st.write(f"{user.get('role')} ({state})")
        with cols[2]:
            label = "Reinstate" if user.get("is_suspended") else "Suspend"
            if st.button(label, key=f"suspend_{user['_id']}"):
                outcome = rpc.set_user_suspended(user["_id"], not user.get("is_suspended"), session.user_id)
                if outcome.ok:
                    st.rerun()
                else:
                    st.error(outcome.error.message)
        with cols[3]:
            if st.button("Details", key=f"details_{user['_id']}"):
                st.session_state['selected_user_id'] = str(user["_id"])

    if st.session_state.get('selected_user_id'):
        user_details(session, st.session_state['selected_user_id'])

def user_details(session, user_id):
    result = rpc.get_user_details(user_id, session.user_id)
    if not result.ok:
        st.error(result.error.message)
        st.session_state['selected_user_id'] = None
        return
    user = result.data

    st.subheader(user.get("full_name"))
    st.write(f"Email: {user.get('email')} · Phone: {user.get('phone') or 'N/A'} · Role: {user.get('role')}")
    if user.get("agency"):
        st.write(f"Agency: {user['agency'].get('agency_name')} "
                 f"({VERIFICATION_LABELS.get(user['agency'].get('verification_status'))})")

    history_df = pd.DataFrame([
        {
            "Vehicle": f"{(b.get('vehicle') or {}).get('make', '')} {(b.get('vehicle') or {}).get('model', '')}".strip(),
            "From": b.get("start_date"),
            "To": b.get("end_date"),
            "Status": status_label(b.get("status")),
            "Total (DZD)": b.get("total_price"),
        }
        for b in user["bookings"]
    ])
    if history_df.empty:
        st.write("No booking.")
    else:
        st.dataframe(history_df, hide_index=True)

    col1, col2, col3 = st.columns(3)
    with col1:
        if st.button("Reset password", key="reset_password"):
            outcome = reset_user_password(user_id, session.user_id)
            if outcome.ok:
                st.success(f"Temporary password: {outcome.data['temporary_password']}")
                st.caption("Give it to the user; it is not shown again.")
            else:
                st.error(outcome.error.message)
    with col2:
        if st.button("Delete account", key="delete_user"):
            outcome = rpc.delete_user(user_id, session.user_id)
            if outcome.ok:
                st.session_state['selected_user_id'] = None
                st.success("Account deleted.")
                st.rerun()
            else:
                st.error(outcome.error.message)
    with col3:
        if st.button("Close", key="close_details"):
            st.session_state['selected_user_id'] = None
            st.rerun()

def export_to_excel(sheets):
    """Workbook with one formatted sheet per DataFrame of ``sheets`` (title -> DataFrame)."""
    output = BytesIO()
    workbook = Workbook()
    workbook.remove(workbook.active)

    bold_font = Font(bold=True)
    center_alignment = Alignment(horizontal="center")
    border = Border(left=Side(style='thin'),
                    right=Side(style='thin'),
                    top=Side(style='thin'),
                    bottom=Side(style='thin'))

    for title, df in sheets.items():
        # Excel caps sheet titles at 31 characters
        sheet = workbook.create_sheet(title[:31])
        for r in dataframe_to_rows(df, index=False, header=True):
            sheet.append(r)
        for cell in sheet["1:1"]:
            cell.font = bold_font
            cell.alignment = center_alignment
        for row in sheet.iter_rows():
            for cell in row:
                cell.border = border

    workbook.save(output)
    logger.info(f"Excel report generated ({', '.join(sheets)})")
    return output.getvalue()

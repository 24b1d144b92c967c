import streamlit as st
import logging
import datetime

import config
from models.rpc_result import RpcResult
from models.vehicle_model import VehicleModel
from modules.booking_status import ACTIVE_STATUSES
from modules.locations import wilaya_options
from modules.rpc import rpc, find_by_id, search_vehicles as search_available_vehicles
from utils import sanitize_input, format_dzd

logger = logging.getLogger(__name__)

TRANSMISSIONS = ["manual", "automatic"]
FUEL_TYPES = ["petrol", "diesel", "hybrid", "electric", "lpg"]

def _owned_vehicle(agency, vehicle_id):
    vehicle = find_by_id("vehicles", vehicle_id)
    if not vehicle or vehicle.get("agency_id") != str(agency["_id"]) or vehicle.get("is_deleted"):
        return None
    return vehicle

@rpc
def add_vehicle(agency, form):
    """Validate and store a new vehicle for ``agency``."""
    vehicle = VehicleModel(**{**form, "agency_id": str(agency["_id"])})
    document = vehicle.model_dump()
    document["created_at"] = datetime.datetime.now()
    vehicle_id = config.db.vehicles.insert_one(document).inserted_id
    logger.info(f"Vehicle {vehicle_id} added to agency {agency['_id']}")
    return RpcResult.success({"vehicle_id": str(vehicle_id)})

@rpc
def update_vehicle(agency, vehicle_id, form):
    current = _owned_vehicle(agency, vehicle_id)
    if not current:
        return RpcResult.failure("not_found", "Vehicle not found.")
    # Validate the merged document before writing any field
    merged = {k: v for k, v in {**current, **form}.items() if k in VehicleModel.model_fields}
    vehicle = VehicleModel(**{**merged, "agency_id": str(agency["_id"])})
    config.db.vehicles.update_one({"_id": current["_id"]}, {"$set": vehicle.model_dump()})
    logger.info(f"Vehicle {vehicle_id} updated")
    return RpcResult.success({"vehicle_id": str(vehicle_id)})

@rpc
def delete_vehicle(agency, vehicle_id):
    """Archive a vehicle unless it still has an active booking.

    The document is kept so past bookings, invoices and revenue still resolve it.
    """
    vehicle = _owned_vehicle(agency, vehicle_id)
    if not vehicle:
        return RpcResult.failure("not_found", "Vehicle not found.")
    booking = config.db.bookings.find_one({"vehicle_id": str(vehicle["_id"]), "status": {"$in": ACTIVE_STATUSES}})
    if booking:
        return RpcResult.failure("forbidden", "A vehicle with an active booking cannot be deleted.")
    config.db.vehicles.update_one(
        {"_id": vehicle["_id"]},
        {"$set": {"is_deleted": True, "is_available": False, "deleted_at": datetime.datetime.now()}},
    )
    logger.info(f"Vehicle {vehicle_id} archived")
    return RpcResult.success({"vehicle_id": str(vehicle_id)})

def vehicle_title(vehicle):
    if not vehicle:
        return "Unknown vehicle"
    year = f" ({vehicle['year']})" if vehicle.get("year") else ""
    return f"{vehicle.get('make', '')} {vehicle.get('model', '')}{year}".strip()

def _vehicle_form(key, vehicle=None, default_wilaya=None):
    """Vehicle fields; returns (submitted, form dict)."""
    vehicle = vehicle or {}
    wilaya = vehicle.get("wilaya") or default_wilaya
    wilayas = wilaya_options()
    with st.form(key=key):
        make = sanitize_input(st.text_input("Make", value=vehicle.get("make", "")))
        model = sanitize_input(st.text_input("Model", value=vehicle.get("model", "")))
        year = st.number_input("Year", min_value=1950, max_value=datetime.date.today().year + 1,
                               value=vehicle.get("year") or 2020, step=1)
        daily_rate = st.number_input("Daily rate (DZD)", min_value=0, value=vehicle.get("daily_rate_dzd", 0), step=500)
        seats = st.number_input("Seats", min_value=1, max_value=30, value=vehicle.get("seats", 5), step=1)
        transmission = st.selectbox("Transmission", TRANSMISSIONS,
                                    index=TRANSMISSIONS.index(vehicle.get("transmission", "manual")))
        fuel_type = st.selectbox("Fuel", FUEL_TYPES, index=FUEL_TYPES.index(vehicle.get("fuel_type", "petrol")))
        wilaya = st.selectbox("Wilaya", wilayas, index=wilayas.index(wilaya) if wilaya in wilayas else 0)
        city = sanitize_input(st.text_input("City", value=vehicle.get("city") or ""))
        image_urls = st.text_area("Image links (one per line)", value="\n".join(vehicle.get("image_urls", [])))
        is_available = st.checkbox("Available for rent", value=vehicle.get("is_available", True))
        submitted = st.form_submit_button(label="Save vehicle")

    form = {
        "make": make,
        "model": model,
        "year": int(year),
        "daily_rate_dzd": int(daily_rate),
        "seats": int(seats),
        "transmission": transmission,
        "fuel_type": fuel_type,
        "wilaya": wilaya,
        "city": city,
        # Order is kept: the first link is the cover picture
        "image_urls": [line.strip() for line in image_urls.splitlines() if line.strip()],
        "is_available": is_available,
    }
    return submitted, form

def manage_vehicles(session):
    st.subheader("My vehicles")
    agency = session.agency

    submitted, form = _vehicle_form("add_vehicle_form", default_wilaya=agency.get("wilaya"))
    if submitted:
        if not form["make"].strip() or not form["model"].strip():
            st.error("Make and model are required!")
        else:
            result = add_vehicle(agency, form)
            if result.ok:
                st.success("Vehicle added!")
                st.rerun()
            else:
                st.error(result.error.message)

    vehicles = list(config.db.vehicles.find({"agency_id": str(agency["_id"]), "is_deleted": {"$ne": True}}).sort("created_at", -1))
    if not vehicles:
        st.write("You have not listed any vehicle yet.")
        return

    for vehicle in vehicles:
        cols = st.columns([3, 1, 1])
        with cols[0]:
            status = "available" if vehicle.get("is_available") else "hidden"
            st.write(f"{vehicle_title(vehicle)} - {format_dzd(vehicle.get('daily_rate_dzd'))}/day - "
                     f"{vehicle.get('seats')} seats, {vehicle.get('transmission')} ({status})")
        with cols[1]:
            if st.button("Edit", key=f"edit_{vehicle['_id']}"):
                st.session_state['editing_vehicle_id'] = str(vehicle["_id"])
        with cols[2]:
            if st.button("Delete", key=f"delete_{vehicle['_id']}"):
                result = delete_vehicle(agency, vehicle["_id"])
                if result.ok:
                    st.success(f"{vehicle_title(vehicle)} deleted.")
                    st.rerun()
                else:
                    st.error(result.error.message)

    editing_vehicle_id = st.session_state.get('editing_vehicle_id')
    if editing_vehicle_id:
        vehicle_to_edit = _owned_vehicle(agency, editing_vehicle_id)
        if not vehicle_to_edit:
            st.session_state['editing_vehicle_id'] = None
            return
        st.subheader(f"Edit {vehicle_title(vehicle_to_edit)}")
        submitted, form = _vehicle_form(f"edit_form_{editing_vehicle_id}", vehicle_to_edit)
        if submitted:
            result = update_vehicle(agency, editing_vehicle_id, form)
            if result.ok:
                st.session_state['editing_vehicle_id'] = None
                st.success("Vehicle updated!")
                st.rerun()
            else:
                st.error(result.error.message)

def search_vehicles():
    """Search form. Returns the chosen (vehicle, start, end) once the renter picks one."""
    st.subheader("Find a vehicle")
    today = datetime.date.today()
    col1, col2, col3 = st.columns(3)
    with col1:
        wilaya = st.selectbox("Wilaya", ["Any"] + wilaya_options())
    with col2:
        start_date = st.date_input("Pickup date", today, min_value=today)
    with col3:
        end_date = st.date_input("Return date", today + datetime.timedelta(days=2), min_value=today)

    col4, col5 = st.columns(2)
    with col4:
        transmission = st.selectbox("Transmission", ["Any"] + TRANSMISSIONS)
    with col5:
        max_rate = st.number_input("Maximum daily rate (DZD, 0 = no limit)", min_value=0, value=0, step=500)

    if end_date < start_date:
        st.error("The return date cannot be before the pickup date.")
        return None

    result = search_available_vehicles(
        start_date,
        end_date,
        wilaya=None if wilaya == "Any" else wilaya,
        transmission=None if transmission == "Any" else transmission,
        max_daily_rate=max_rate or None,
    )
    if not result.ok:
        st.error(result.error.message)
        return None
    if not result.data:
        st.info("No vehicle is available for these dates.")
        return None

    st.write(f"{len(result.data)} vehicle(s) available from {start_date} to {end_date}")
    for vehicle in result.data:
        cols = st.columns([1, 3, 1])
        with cols[0]:
            if vehicle.get("image_urls"):
                st.image(vehicle["image_urls"][0], width=140)
        with cols[1]:
            st.write(f"**{vehicle_title(vehicle)}** - {vehicle.get('city') or ''}, {vehicle.get('wilaya') or ''}")
            st.write(f"{vehicle.get('seats')} seats · {vehicle.get('transmission')} · {vehicle.get('fuel_type')}")
            st.write(f"{format_dzd(vehicle.get('daily_rate_dzd'))} / day")
        with cols[2]:
            if st.button("Book", key=f"book_{vehicle['_id']}"):
                return vehicle, start_date, end_date
    return None

import streamlit as st
import logging

import config
from modules import rpc
from utils import sanitize_input

logger = logging.getLogger(__name__)

DEFAULT_WILAYAS = [
    "Adrar", "Chlef", "Laghouat", "Oum El Bouaghi", "Batna", "Béjaïa", "Biskra", "Béchar",
    "Blida", "Bouira", "Tamanrasset", "Tébessa", "Tlemcen", "Tiaret", "Tizi Ouzou", "Algiers",
    "Djelfa", "Jijel", "Sétif", "Saïda", "Skikda", "Sidi Bel Abbès", "Annaba", "Guelma",
    "Constantine", "Médéa", "Mostaganem", "M'Sila", "Mascara", "Ouargla", "Oran", "El Bayadh",
    "Illizi", "Bordj Bou Arréridj", "Boumerdès", "El Tarf", "Tindouf", "Tissemsilt", "El Oued",
    "Khenchela", "Souk Ahras", "Tipaza", "Mila", "Aïn Defla", "Naâma", "Aïn Témouchent",
    "Ghardaïa", "Relizane", "Timimoun", "Bordj Badji Mokhtar", "Ouled Djellal", "Béni Abbès",
    "In Salah", "In Guezzam", "Touggourt", "Djanet", "El M'Ghair", "El Meniaa",
]

def ensure_default_wilayas():
    """Seed the wilayas collection on first start."""
    if config.db.wilayas.count_documents({}) > 0:
        return
    config.db.wilayas.insert_many([{"name": name} for name in DEFAULT_WILAYAS])
    logger.info(f"{len(DEFAULT_WILAYAS)} wilayas created.")

def wilaya_options():
    """Wilaya names for the select boxes, the built-in list while none is stored."""
    result = rpc.list_locations()
    if result.ok and result.data:
        return [w["name"] for w in result.data]
    return list(DEFAULT_WILAYAS)

def manage_locations(session):
    st.subheader("Locations")
    result = rpc.list_locations()
    if not result.ok:
        st.error(result.error.message)
        return
    wilayas = result.data

    with st.form(key="add_wilaya"):
        name = sanitize_input(st.text_input("New wilaya"))
        submitted = st.form_submit_button("Add wilaya")
    if submitted:
        _show(rpc.save_location(session.user_id, name), f"{name} added.")

    if not wilayas:
        st.write("No wilaya yet.")
        return

    for wilaya in wilayas:
        wilaya_id = str(wilaya["_id"])
        with st.expander(f"{wilaya['name']} ({len(wilaya['cities'])} cities)"):
            with st.form(key=f"rename_{wilaya_id}"):
                new_name = sanitize_input(st.text_input("Name", value=wilaya["name"]))
                renamed = st.form_submit_button("Rename")
            if renamed:
                _show(rpc.save_location(session.user_id, new_name, location_id=wilaya_id), "Wilaya renamed.")

            for city in wilaya["cities"]:
                cols = st.columns([4, 1])
                cols[0].write(city["name"])
                if cols[1].button("Delete", key=f"delete_city_{city['_id']}"):
                    _show(rpc.delete_location(session.user_id, city["_id"], is_city=True), f"{city['name']} deleted.")

            with st.form(key=f"add_city_{wilaya_id}"):
                city_name = sanitize_input(st.text_input("New city"))
                added = st.form_submit_button("Add city")
            if added:
                _show(rpc.save_location(session.user_id, city_name, wilaya_id=wilaya_id), f"{city_name} added.")

            if st.button("Delete wilaya and its cities", key=f"delete_wilaya_{wilaya_id}"):
                _show(rpc.delete_location(session.user_id, wilaya_id), f"{wilaya['name']} deleted.")

def _show(result, message):
    if result.ok:
        st.success(message)
        st.rerun()
    else:
        st.error(result.error.message)

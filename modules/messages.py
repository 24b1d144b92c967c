import streamlit as st
import logging

from modules import rpc
from modules.vehicle import vehicle_title

logger = logging.getLogger(__name__)

def conversation_label(conversation):
    unread = f" ({conversation['unread']} new)" if conversation.get("unread") else ""
    return f"{conversation.get('other_party')} - {vehicle_title(conversation.get('vehicle'))}{unread}"

def messages_page(session):
    """Conversations between renters and agencies. New messages show up on refresh."""
    st.subheader("Messages")
    result = rpc.list_conversations(session.user_id)
    if not result.ok:
        st.error(result.error.message)
        return
    conversations = result.data
    if not conversations:
        st.write("No conversation yet.")
        return

    ids = [str(c["_id"]) for c in conversations]
    labels = {str(c["_id"]): conversation_label(c) for c in conversations}
    opened = st.session_state.get("open_conversation_id")
    conversation_id = st.selectbox(
        "Conversation", ids,
        index=ids.index(opened) if opened in ids else 0,
        format_func=labels.get,
    )
    st.session_state["open_conversation_id"] = conversation_id

    messages = rpc.list_messages(conversation_id, session.user_id)
    if not messages.ok:
        st.error(messages.error.message)
        return
    for message in messages.data:
        role = "user" if message["sender_id"] == session.user_id else "assistant"
        with st.chat_message(role):
            st.write(message["content"])
            st.caption(message["created_at"].strftime("%d/%m/%Y %H:%M"))

    with st.form(key="send_message", clear_on_submit=True):
        content = st.text_area("Your message", max_chars=2000)
        sent = st.form_submit_button("Send")
    if sent:
        if not content.strip():
            st.error("The message is empty.")
            return
        outcome = rpc.send_message(conversation_id, session.user_id, content)
        if outcome.ok:
            st.rerun()
        else:
            st.error(outcome.error.message)

    if st.button("Refresh"):
        st.rerun()

from __future__ import annotations

"""Streamlit chat widget for the portfolio site.

Run with:
    streamlit run portfolio_chat/frontend/streamlit_view.py

``st.session_state`` is scoped to one browser tab, so it doubles as the
tab-scoped storage for the chat session id; the pseudo user id goes to a JSON
file that survives restarts.
"""

from typing import Optional

import streamlit as st

from portfolio_chat import config
from portfolio_chat.client.chat_history import ChatHistoryClient
from portfolio_chat.client.cooldown import ChatCooldown
from portfolio_chat.client.storage import JsonFileStorage, MemoryStorage
from portfolio_chat.llm.message_content import extract_message_content
from portfolio_chat.llm.provider_config import ProviderConfig

ROLE_LABELS = {"user": "You", "assistant": "Assistant", "system": "Notice"}


def submit_message(chat: ChatHistoryClient, cooldown: ChatCooldown, text: str) -> Optional[str]:
    """Send ``text`` unless a cooldown is active.

    Returns a notice to show the visitor, or None when there is nothing to
    say. A failed send starts a cooldown based on the failures seen *before*
    this one, so the first failure gets the shortest lockout.
    """
    if not text or not text.strip():
        return None
    if cooldown.is_cooldown_active():
        return cooldown.get_cooldown_message()

    if chat.send_message(text):
        cooldown.reset_cooldown()
        return None

    cooldown.start_cooldown()
    cooldown.increment_error_count()
    return cooldown.get_cooldown_message()


def _get_chat() -> ChatHistoryClient:
    if "chat_client" not in st.session_state:
        chat = ChatHistoryClient(
            ProviderConfig.from_name(config.LLM_PROVIDER),
            base_url=config.CHAT_BACKEND_URL,
            session_storage=MemoryStorage(st.session_state),
            durable_storage=JsonFileStorage(config.DURABLE_STORAGE_PATH),
            timeout=(config.CHAT_CONNECT_TIMEOUT, config.CHAT_READ_TIMEOUT),
        )
        chat.init()
        st.session_state["chat_client"] = chat
        st.session_state["chat_cooldown"] = ChatCooldown()
    return st.session_state["chat_client"]


def render_chat() -> None:
    st.header("💬 Chat about my work")
    chat = _get_chat()
    cooldown: ChatCooldown = st.session_state["chat_cooldown"]

    with st.sidebar:
        st.caption(f"Provider: {chat.active_provider.value}")
        if st.button("Clear chat", key="chat_clear_btn"):
            chat.clear_chat()
            cooldown.reset_cooldown()

    for message in chat.messages:
        with st.chat_message(message.role if message.role != "system" else "assistant"):
            if message.role == "system":
                st.caption(ROLE_LABELS["system"])
            st.markdown(extract_message_content(message.content))

    notice = cooldown.get_cooldown_message()
    if notice:
        st.warning(notice)

    disabled = chat.is_loading or cooldown.is_cooldown_active()
    user_input = st.chat_input("Ask about projects, experience or skills…", disabled=disabled)
    if user_input:
        # The cooldown notice, if any, is rendered again on the rerun.
        with st.spinner("Thinking…"):
            submit_message(chat, cooldown, user_input)
        st.rerun()


if __name__ == "__main__":
    render_chat()

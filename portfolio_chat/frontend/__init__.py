"""Streamlit views that mount the chat client."""

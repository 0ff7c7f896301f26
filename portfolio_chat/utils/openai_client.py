"""OpenAI client factories for both Streamlit Cloud and local environments."""

import os
from typing import Optional

import openai
from dotenv import load_dotenv

# Load environment variables from .env file (for local development)
load_dotenv()


def _resolve_api_key() -> str:
    """Return the OpenAI API key from the environment or Streamlit secrets.

    1. In local dev: uses the OPENAI_API_KEY environment variable
    2. In Streamlit Cloud: falls back to st.secrets['OPENAI_API_KEY']

    Raises:
        ValueError: If no API key is found in either place
    """
    api_key: Optional[str] = os.getenv("OPENAI_API_KEY")

    # Importing streamlit outside of a Streamlit context or reading st.secrets
    # without a secrets file can raise RuntimeError.
    if not api_key:
        try:
            import streamlit as st
            if hasattr(st, "secrets") and "OPENAI_API_KEY" in st.secrets:
                api_key = st.secrets["OPENAI_API_KEY"]
        except Exception:
            api_key = None

    if not api_key:
        raise ValueError(
            "OpenAI API key not found. Please set either:\n"
            "1. OPENAI_API_KEY in Streamlit secrets (for cloud deployment)\n"
            "2. OPENAI_API_KEY environment variable (for local development)"
        )
    return api_key


def get_openai_client() -> openai.OpenAI:
    """Return a blocking OpenAI client, used by the completion route."""
    return openai.OpenAI(api_key=_resolve_api_key())


def get_async_openai_client() -> openai.AsyncOpenAI:
    """Return an async OpenAI client, used by the Assistants streaming route."""
    return openai.AsyncOpenAI(api_key=_resolve_api_key())

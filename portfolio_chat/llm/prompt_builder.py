from __future__ import annotations

"""Prompt construction helpers for the completion chat route.

All messages sent to the chat completion API are assembled via this module so
there is one single source of truth for the system prompt and the ordering of
history turns.

Templates live in ``portfolio_chat/llm/prompts/`` and use Jinja2 for simple
variable substitution.
"""

from pathlib import Path
from typing import Dict, List

import jinja2

# ---------------------------------------------------------------------------
# Paths & Jinja environment
# ---------------------------------------------------------------------------

PROMPTS_DIR = Path(__file__).resolve().parent / "prompts"

# Lazy-initialised Jinja environment so we only pay the cost once.
_ENV: jinja2.Environment | None = None

# Roles the provider accepts from stored history; locally synthesized
# ``system`` notices never leave the client.
_HISTORY_ROLES = {"user", "assistant"}


def _get_env() -> jinja2.Environment:
    global _ENV
    if _ENV is None:
        _ENV = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(PROMPTS_DIR)),
            autoescape=False,  # we do not render HTML
            trim_blocks=True,
            lstrip_blocks=True,
        )
    return _ENV


def build_system_prompt(owner_name: str, documentation: str | None = None) -> str:
    """Render the system prompt, optionally extended with extra documentation."""
    template = _get_env().get_template("system_prompt.jinja")
    return template.render(owner_name=owner_name, documentation=documentation or "").strip()


# ---------------------------------------------------------------------------
# Public API – build the messages list
# ---------------------------------------------------------------------------

def build_messages(
    message: str,
    *,
    owner_name: str,
    documentation: str | None = None,
    chat_history: List[Dict[str, str]] | None = None,
) -> List[Dict[str, str]]:
    """Return a list of OpenAI ChatCompletion-style messages.

    Parameters
    ----------
    message
        The visitor's new message.
    owner_name
        Name of the portfolio owner the assistant speaks for.
    documentation
        Optional extra context appended to the system prompt.
    chat_history
        Optional list of previous chat turns, oldest first.
    """
    messages: List[Dict[str, str]] = [
        {"role": "system", "content": build_system_prompt(owner_name, documentation)},
    ]

    if chat_history:
        messages.extend(
            {"role": turn["role"], "content": turn["content"]}
            for turn in chat_history
            if turn.get("role") in _HISTORY_ROLES
        )

    messages.append({"role": "user", "content": message})
    return messages

"""Blocking chat completion helper used by the non-streaming chat route."""

from __future__ import annotations

from typing import Dict, List

import openai

from portfolio_chat.utils.logger import get_logger

logger = get_logger(__name__)


def generate_chat_completion(
    client: openai.OpenAI,
    messages: List[Dict[str, str]],
    *,
    model: str,
    temperature: float = 0.7,
    max_tokens: int = 1000,
) -> str:
    """Call the chat completion API once and return the assistant's reply text."""
    logger.info(
        "Calling OpenAI chat completion | model=%s | messages=%d",
        model,
        len(messages),
    )
    try:
        response = client.chat.completions.create(
            model=model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )
    except Exception as e:
        logger.error("OpenAI chat completion failed: %s", e)
        raise

    return response.choices[0].message.content or ""

"""Client-side chat session handling: history, streaming, cooldown and storage."""

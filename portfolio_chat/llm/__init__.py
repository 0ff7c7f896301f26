"""Provider configuration, prompt construction and message content helpers."""

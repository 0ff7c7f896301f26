"""FastAPI backend serving the chat, users and projects APIs."""

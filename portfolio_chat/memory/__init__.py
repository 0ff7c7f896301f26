"""SQLite persistence for sessions, chat messages, users, projects and telemetry."""

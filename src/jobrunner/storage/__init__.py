"""SQLite storage helpers."""

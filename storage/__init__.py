"""SQLite persistence: metrics cache and refresh run tracking."""

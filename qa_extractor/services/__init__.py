"""Local storage and persisted settings services."""

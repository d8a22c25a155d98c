"""External services (sound asset downloads)."""

"""Terminal presentation layer."""

"""Core infrastructure: errors, logging, paths and keyboard input."""

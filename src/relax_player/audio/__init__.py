"""Audio channel model and playback engine."""

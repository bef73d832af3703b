"""Chat turn handling and transcription routes."""

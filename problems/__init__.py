"""Problem models."""

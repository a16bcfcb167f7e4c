"""Input loading."""

"""Domain objects."""

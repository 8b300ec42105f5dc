"""AI components of the intent engine."""

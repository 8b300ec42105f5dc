"""Database access for the intent engine."""

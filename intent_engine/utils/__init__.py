"""Logging and exception utilities shared across the engine."""

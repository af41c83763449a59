"""Shared helpers: logging and the exception hierarchy."""

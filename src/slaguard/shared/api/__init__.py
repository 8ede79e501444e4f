"""Shared HTTP concerns (middleware, exception handlers)."""

"""Web framework adapters exposing the analytics API."""

"""Encoders for analytics API responses."""

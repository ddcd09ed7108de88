"""Adapters connecting the analytics core to stores and web frameworks."""

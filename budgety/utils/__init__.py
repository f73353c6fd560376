"""Shared date and money helpers."""

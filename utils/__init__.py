"""Formatting and other small helpers."""

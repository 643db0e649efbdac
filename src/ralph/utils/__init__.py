"""Utility modules for ralph."""

"""Utility modules for Todo Analytics."""

"""Helpers shared by the console routes."""

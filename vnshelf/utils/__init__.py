"""Formatting helpers shared by the views."""

"""
Central version management for VN Shelf.
"""

from __future__ import annotations

__all__ = ["__app_name__", "__version__", "__release_date__", "__author__", "__license__"]

__app_name__ = "VN Shelf"
__version__ = "0.9.2"
__release_date__ = "2026-09-28"
__author__ = "VN Shelf contributors"
__license__ = "MIT"

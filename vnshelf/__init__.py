"""VN Shelf - client-side state layer for a visual-novel launcher."""

from __future__ import annotations

from vnshelf.version import __version__

__all__ = ["__version__"]

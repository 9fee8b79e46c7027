from __future__ import annotations

__all__: list[str] = ["ReleaseClient", "VndbClient"]

from vnshelf.integrations.release_api import ReleaseClient
from vnshelf.integrations.vndb_api import VndbClient

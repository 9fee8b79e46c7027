"""VNDB Kana API client.

Implements the catalog backend on top of the public VNDB HTTP API
(https://api.vndb.org/kana). Title detail and character lists are cached
in memory and as JSON files under the cache directory; ``force_refresh``
skips both. User-list commands need an API token from the settings.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

import requests

from vnshelf.core.backend import CatalogBackend
from vnshelf.core.errors import (
    AuthRequiredError,
    CatalogApiError,
    NetworkError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from vnshelf.core.models import AuthInfo, CatalogCharacter, CatalogDetail, CatalogSearchResult, UserListEntry
from vnshelf.services.filter_constants import STATUS_LABELS
from vnshelf.version import __version__

if TYPE_CHECKING:
    from vnshelf.config import Config

logger = logging.getLogger("vnshelf.vndb_api")

__all__ = ["VndbClient"]

SEARCH_FIELDS = "id, title, image.url, image.sexual, image.violence, released, rating"

DETAIL_FIELDS = (
    "id, title, image.url, image.sexual, image.violence, released, rating, description, "
    "length, length_minutes, tags.id, tags.name, tags.rating, tags.spoiler, "
    "developers.id, developers.name"
)

CHARACTER_FIELDS = (
    "id, name, original, aliases, image.url, image.sexual, image.violence, description, "
    "blood_type, height, weight, bust, waist, hips, cup, age, birthday, sex, "
    "vns.id, vns.role, vns.spoiler, "
    "traits.id, traits.name, traits.group_id, traits.group_name, traits.spoiler"
)

USER_ENTRY_FIELDS = "id, vote, labels.id, labels.label, started, finished"

# Labels 1-5 are mutually exclusive list statuses
EXCLUSIVE_STATUS_LABELS = (1, 2, 3, 4, 5)


class VndbClient(CatalogBackend):
    """Client for the VNDB Kana API.

    Attributes:
        search_limit: Results returned by a title search.
        character_limit: Characters requested per title.
        cache_ttl: Age in seconds after which disk cache files are ignored.
    """

    BASE_URL = "https://api.vndb.org/kana"

    search_limit = 10
    character_limit = 50
    cache_ttl = 7 * 24 * 60 * 60

    def __init__(self, settings: Config | None = None, cache_dir: Path | None = None, timeout: float = 10) -> None:
        """Initializes the client with a configured session.

        Args:
            settings: Source of the API token and user id (default: global config).
            cache_dir: Root of the JSON cache (default: ``settings.CACHE_DIR / "vndb"``).
            timeout: Request timeout in seconds.
        """
        if settings is None:
            from vnshelf.config import config as settings

        self._config = settings
        self._cache_dir = cache_dir if cache_dir is not None else Path(settings.CACHE_DIR) / "vndb"
        self._timeout = timeout

        self._session = requests.Session()
        self._session.headers.update({"User-Agent": f"VNShelf/{__version__}"})

        self._detail_cache: dict[str, CatalogDetail] = {}
        self._character_cache: dict[str, list[CatalogCharacter]] = {}

    # ── HTTP ───────────────────────────────────────────

    @property
    def has_credentials(self) -> bool:
        return bool(self._config.VNDB_TOKEN)

    def _auth_headers(self) -> dict[str, str]:
        token = self._config.VNDB_TOKEN
        if not token:
            raise AuthRequiredError("No VNDB token configured")
        return {"Authorization": f"Token {token}"}

    def _request(self, method: str, path: str, body: Any = None, auth: bool = False) -> requests.Response:
        """Sends one API request and translates failures.

        Raises:
            NetworkError: On transport errors.
            AuthRequiredError: On 401/403.
            CatalogApiError: On any other non-2xx status.
        """
        headers = self._auth_headers() if auth else {}
        url = f"{self.BASE_URL}{path}"
        try:
            response = self._session.request(method, url, json=body, headers=headers, timeout=self._timeout)
        except requests.RequestException as exc:
            logger.warning("VNDB: network error for %s %s: %s", method, path, exc)
            raise NetworkError(str(exc)) from exc

        if response.status_code in (401, 403):
            raise AuthRequiredError("Invalid token")
        if not 200 <= response.status_code < 300:
            logger.warning("VNDB: unexpected status %d for %s %s", response.status_code, method, path)
            raise CatalogApiError(f"VNDB returned {response.status_code}: {response.text}")
        return response

    def _query(self, endpoint: str, body: dict[str, Any], auth: bool = False) -> list[dict[str, Any]]:
        """POSTs a query and returns the ``results`` list."""
        response = self._request("POST", endpoint, body, auth=auth)
        try:
            return list(response.json().get("results", []))
        except (ValueError, AttributeError) as exc:
            raise CatalogApiError(f"Malformed VNDB response: {exc}") from exc

    # ── Disk cache ─────────────────────────────────────

    def _cache_file(self, kind: str, catalog_id: str) -> Path:
        return self._cache_dir / kind / f"{catalog_id}.json"

    def _read_cache(self, kind: str, catalog_id: str) -> Any:
        cache_file = self._cache_file(kind, catalog_id)
        if not cache_file.exists():
            return None
        try:
            if time.time() - cache_file.stat().st_mtime > self.cache_ttl:
                return None
            with open(cache_file, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.debug("VNDB: unreadable cache file %s: %s", cache_file, exc)
            return None

    def _write_cache(self, kind: str, catalog_id: str, data: Any) -> None:
        cache_file = self._cache_file(kind, catalog_id)
        try:
            cache_file.parent.mkdir(parents=True, exist_ok=True)
            with open(cache_file, "w", encoding="utf-8") as f:
                json.dump(data, f)
        except OSError as exc:
            logger.warning("VNDB: could not write cache file %s: %s", cache_file, exc)

    def _discard_cache(self, kind: str, catalog_id: str, exc: Exception) -> None:
        """Deletes a cache file whose contents no longer parse."""
        cache_file = self._cache_file(kind, catalog_id)
        logger.debug("VNDB: discarding malformed cache file %s: %s", cache_file, exc)
        try:
            cache_file.unlink(missing_ok=True)
        except OSError as unlink_exc:
            logger.warning("VNDB: could not delete cache file %s: %s", cache_file, unlink_exc)

    def clear_cache(self, catalog_id: str | None = None) -> None:
        """Drops cached detail and characters for one title, or for all titles.

        Raises:
            StorageError: When a cache file cannot be deleted.
        """
        kinds = ("vn", "characters")
        if catalog_id is None:
            self._detail_cache.clear()
            self._character_cache.clear()
            files = [
                cache_file
                for kind in kinds
                if (self._cache_dir / kind).is_dir()
                for cache_file in (self._cache_dir / kind).glob("*.json")
            ]
        else:
            self._detail_cache.pop(catalog_id, None)
            self._character_cache.pop(catalog_id, None)
            files = [self._cache_file(kind, catalog_id) for kind in kinds]

        for cache_file in files:
            try:
                cache_file.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("VNDB: could not delete cache file %s: %s", cache_file, exc)
                raise StorageError(f"Could not delete cache file {cache_file}: {exc}") from exc

        if catalog_id is None:
            logger.info("VNDB: cleared all cached data")

    # ── Catalog reads ──────────────────────────────────

    def search_catalog(self, query: str) -> list[CatalogSearchResult]:
        """Searches titles by free text.

        Args:
            query: Search text; blank returns no results without a request.

        Returns:
            Up to ``search_limit`` hits.
        """
        query = query.strip()
        if not query:
            return []
        body = {"filters": ["search", "=", query], "fields": SEARCH_FIELDS, "results": self.search_limit}
        return [CatalogSearchResult.from_dict(item) for item in self._query("/vn", body)]

    def fetch_catalog_detail(self, catalog_id: str, force_refresh: bool = False) -> CatalogDetail:
        """Fetches title detail, from cache unless ``force_refresh``.

        Raises:
            NotFoundError: When VNDB has no title with this id.
        """
        if not force_refresh:
            if catalog_id in self._detail_cache:
                return self._detail_cache[catalog_id]
            cached = self._read_cache("vn", catalog_id)
            if cached is not None:
                try:
                    detail = CatalogDetail.from_dict(cached)
                except (KeyError, TypeError, ValueError, AttributeError) as exc:
                    self._discard_cache("vn", catalog_id, exc)
                else:
                    self._detail_cache[catalog_id] = detail
                    return detail

        body = {"filters": ["id", "=", catalog_id], "fields": DETAIL_FIELDS, "results": 1}
        results = self._query("/vn", body)
        if not results:
            raise NotFoundError(f"VN not found: {catalog_id}")

        try:
            detail = CatalogDetail.from_dict(results[0])
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise CatalogApiError(f"Malformed VN record: {exc}") from exc

        self._detail_cache[catalog_id] = detail
        self._write_cache("vn", catalog_id, results[0])
        return detail

    def fetch_catalog_characters(self, catalog_id: str, force_refresh: bool = False) -> list[CatalogCharacter]:
        """Fetches the characters of a title, from cache unless ``force_refresh``."""
        if not force_refresh:
            if catalog_id in self._character_cache:
                return list(self._character_cache[catalog_id])
            cached = self._read_cache("characters", catalog_id)
            if cached is not None:
                try:
                    characters = [CatalogCharacter.from_dict(item) for item in cached]
                except (KeyError, TypeError, ValueError, AttributeError) as exc:
                    self._discard_cache("characters", catalog_id, exc)
                else:
                    self._character_cache[catalog_id] = characters
                    return list(characters)

        body = {
            "filters": ["vn", "=", ["id", "=", catalog_id]],
            "fields": CHARACTER_FIELDS,
            "results": self.character_limit,
        }
        results = self._query("/character", body)
        try:
            characters = [CatalogCharacter.from_dict(item) for item in results]
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise CatalogApiError(f"Malformed character record: {exc}") from exc

        self._character_cache[catalog_id] = characters
        self._write_cache("characters", catalog_id, results)
        return list(characters)

    # ── Account ────────────────────────────────────────

    def check_auth(self) -> AuthInfo:
        """Validates the token and remembers the user id in the settings.

        Raises:
            AuthRequiredError: When no token is set or VNDB rejects it.
        """
        response = self._request("GET", "/authinfo", auth=True)
        try:
            auth = AuthInfo.from_dict(response.json())
        except (ValueError, KeyError, TypeError) as exc:
            raise CatalogApiError(f"Malformed auth response: {exc}") from exc

        if auth.id != self._config.VNDB_USER_ID:
            self._config.VNDB_USER_ID = auth.id
            self._config.save()
        logger.info("VNDB: authenticated as %s", auth.username)
        return auth

    def _user_id(self) -> str:
        if not self._config.VNDB_USER_ID:
            self.check_auth()
        return str(self._config.VNDB_USER_ID)

    def fetch_user_entry(self, catalog_id: str) -> UserListEntry | None:
        """Returns the user's list record for a title, or None if it is not listed."""
        body = {
            "user": self._user_id(),
            "filters": ["id", "=", catalog_id],
            "fields": USER_ENTRY_FIELDS,
            "results": 1,
        }
        results = self._query("/ulist", body, auth=True)
        if not results:
            return None
        return UserListEntry.from_dict(results[0])

    def _patch_user_entry(self, catalog_id: str, body: dict[str, Any]) -> None:
        self._request("PATCH", f"/ulist/{catalog_id}", body, auth=True)

    def set_user_status(self, catalog_id: str, label_id: int) -> None:
        """Sets a status label and unsets the other exclusive status labels.

        Raises:
            ValidationError: For an unknown label id.
        """
        if label_id not in STATUS_LABELS:
            raise ValidationError(f"Unknown status label: {label_id}")
        body = {
            "labels_set": [label_id],
            "labels_unset": [label for label in EXCLUSIVE_STATUS_LABELS if label != label_id],
        }
        self._patch_user_entry(catalog_id, body)

    def set_user_vote(self, catalog_id: str, vote: int) -> None:
        """Sets the user's vote.

        Raises:
            ValidationError: When the vote is outside 10..100.
        """
        if not 10 <= vote <= 100:
            raise ValidationError(f"Vote must be between 10 and 100, got {vote}")
        self._patch_user_entry(catalog_id, {"vote": vote})

    def remove_user_vote(self, catalog_id: str) -> None:
        self._patch_user_entry(catalog_id, {"vote": None})

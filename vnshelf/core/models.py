# vnshelf/core/models.py

"""Dataclasses for library records, catalog projections and update metadata.

Everything here is a frozen value type. Library records are replaced
wholesale (``dataclasses.replace``) when a store patches them, which keeps
memoized views honest: a changed entry is always a new object.

The ``from_dict`` constructors accept the JSON shapes returned by the
backend and by the VNDB Kana API. Unknown keys are ignored and missing
optional keys fall back to defaults.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

logger = logging.getLogger("vnshelf.models")

__all__ = [
    "AuthInfo",
    "CatalogCharacter",
    "CatalogCharacterTrait",
    "CatalogCharacterVn",
    "CatalogDetail",
    "CatalogImage",
    "CatalogProducer",
    "CatalogSearchResult",
    "CatalogTag",
    "LibraryEntry",
    "ProgressKind",
    "UpdateMetadata",
    "UpdateProgressEvent",
    "UserLabel",
    "UserListEntry",
    "parse_timestamp",
]


def parse_timestamp(value: Any) -> datetime | None:
    """Parses an ISO-8601 timestamp as stored by the backend.

    Args:
        value: A datetime, an ISO string (``Z`` suffix allowed) or None.

    Returns:
        The parsed datetime, or None for empty or unparseable input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Unparseable timestamp: %r", value)
        return None


def _tuple_of(cls: Any, items: Any) -> tuple:
    """Builds a tuple of ``cls.from_dict`` values from an optional list."""
    if not items:
        return ()
    return tuple(cls.from_dict(item) for item in items)


# ---------------------------------------------------------------------------
# Library
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LibraryEntry:
    """A single executable tracked by the launcher.

    Attributes:
        id: Opaque identifier assigned by the backend.
        title: Display title.
        path: Absolute path to the executable.
        catalog_id: VNDB id (e.g. ``"v17"``) once the entry is linked.
        cover_url: Cover image reference.
        play_time: Cumulative play time in minutes.
        is_finished: Completion flag.
        last_played: When the entry was last played, if ever.
        is_hidden: Hidden entries are filtered out of the default view.
    """

    id: str
    title: str
    path: str
    catalog_id: str | None = None
    cover_url: str | None = None
    play_time: int = 0
    is_finished: bool = False
    last_played: datetime | None = None
    is_hidden: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LibraryEntry:
        """Builds an entry from a backend record.

        Accepts both ``catalog_id`` and the legacy ``vndb_id`` key.
        """
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            path=data.get("path", ""),
            catalog_id=data.get("catalog_id", data.get("vndb_id")),
            cover_url=data.get("cover_url"),
            play_time=int(data.get("play_time", 0) or 0),
            is_finished=bool(data.get("is_finished", False)),
            last_played=parse_timestamp(data.get("last_played")),
            is_hidden=bool(data.get("is_hidden", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serializes the entry back into the backend record shape."""
        return {
            "id": self.id,
            "title": self.title,
            "path": self.path,
            "catalog_id": self.catalog_id,
            "cover_url": self.cover_url,
            "play_time": self.play_time,
            "is_finished": self.is_finished,
            "last_played": self.last_played.isoformat() if self.last_played else None,
            "is_hidden": self.is_hidden,
        }

    @property
    def play_time_hours(self) -> float:
        """Returns play time in hours, rounded to 1 decimal place."""
        return round(self.play_time / 60, 1)

    @property
    def last_played_timestamp(self) -> float:
        """POSIX timestamp of ``last_played``; never-played entries sort as the epoch."""
        if self.last_played is None:
            return 0.0
        moment = self.last_played
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment.timestamp()


# ---------------------------------------------------------------------------
# Catalog (VNDB)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CatalogImage:
    """Image reference with VNDB's 0-2 sexual/violence sensitivity levels."""

    url: str
    sexual: float = 0.0
    violence: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> CatalogImage | None:
        if not data or not data.get("url"):
            return None
        return cls(
            url=data["url"],
            sexual=float(data.get("sexual") or 0.0),
            violence=float(data.get("violence") or 0.0),
        )


@dataclass(frozen=True)
class CatalogTag:
    """Title-level tag. ``spoiler`` 0 is always safe to show."""

    id: str
    name: str
    rating: float = 0.0
    spoiler: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CatalogTag:
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            rating=float(data.get("rating") or 0.0),
            spoiler=int(data.get("spoiler") or 0),
        )


@dataclass(frozen=True)
class CatalogProducer:
    id: str
    name: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CatalogProducer:
        return cls(id=data["id"], name=data.get("name", ""))


@dataclass(frozen=True)
class CatalogSearchResult:
    """One hit of a catalog title search."""

    id: str
    title: str
    image: CatalogImage | None = None
    released: str | None = None
    rating: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CatalogSearchResult:
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            image=CatalogImage.from_dict(data.get("image")),
            released=data.get("released"),
            rating=data.get("rating"),
        )


@dataclass(frozen=True)
class CatalogDetail:
    """Full catalog record for one title."""

    id: str
    title: str
    image: CatalogImage | None = None
    released: str | None = None
    rating: float | None = None
    description: str | None = None
    length: int | None = None
    length_minutes: int | None = None
    tags: tuple[CatalogTag, ...] = ()
    developers: tuple[CatalogProducer, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CatalogDetail:
        return cls(
            id=data["id"],
            title=data.get("title", ""),
            image=CatalogImage.from_dict(data.get("image")),
            released=data.get("released"),
            rating=data.get("rating"),
            description=data.get("description"),
            length=data.get("length"),
            length_minutes=data.get("length_minutes"),
            tags=_tuple_of(CatalogTag, data.get("tags")),
            developers=_tuple_of(CatalogProducer, data.get("developers")),
        )


@dataclass(frozen=True)
class CatalogCharacterTrait:
    """Character trait with its category ("group") and spoiler level."""

    id: str
    name: str
    group_name: str | None = None
    spoiler: int = 0
    group_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CatalogCharacterTrait:
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            group_name=data.get("group_name"),
            spoiler=int(data.get("spoiler") or 0),
            group_id=data.get("group_id"),
        )

    @property
    def is_spoiler(self) -> bool:
        return self.spoiler > 0


@dataclass(frozen=True)
class CatalogCharacterVn:
    """A character's appearance in one title: role plus spoiler level."""

    id: str
    role: str
    spoiler: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CatalogCharacterVn:
        return cls(
            id=data["id"],
            role=data.get("role") or "",
            spoiler=int(data.get("spoiler") or 0),
        )


@dataclass(frozen=True)
class CatalogCharacter:
    """Catalog character record. Physical attributes are optional."""

    id: str
    name: str
    original: str | None = None
    aliases: tuple[str, ...] = ()
    image: CatalogImage | None = None
    description: str | None = None
    blood_type: str | None = None
    height: int | None = None
    weight: int | None = None
    bust: int | None = None
    waist: int | None = None
    hips: int | None = None
    cup: str | None = None
    age: int | None = None
    birthday: tuple[int, ...] | None = None
    sex: tuple[str, ...] | None = None
    vns: tuple[CatalogCharacterVn, ...] = ()
    traits: tuple[CatalogCharacterTrait, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CatalogCharacter:
        birthday = data.get("birthday")
        sex = data.get("sex")
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            original=data.get("original"),
            aliases=tuple(data.get("aliases") or ()),
            image=CatalogImage.from_dict(data.get("image")),
            description=data.get("description"),
            blood_type=data.get("blood_type"),
            height=data.get("height"),
            weight=data.get("weight"),
            bust=data.get("bust"),
            waist=data.get("waist"),
            hips=data.get("hips"),
            cup=data.get("cup"),
            age=data.get("age"),
            birthday=tuple(birthday) if birthday else None,
            sex=tuple(sex) if sex else None,
            vns=_tuple_of(CatalogCharacterVn, data.get("vns")),
            traits=_tuple_of(CatalogCharacterTrait, data.get("traits")),
        )

    def role_in(self, catalog_id: str) -> CatalogCharacterVn | None:
        """Returns this character's appearance record for a title, if any."""
        for appearance in self.vns:
            if appearance.id == catalog_id:
                return appearance
        return None


@dataclass(frozen=True)
class UserLabel:
    id: int
    label: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserLabel:
        return cls(id=int(data["id"]), label=data.get("label", ""))


@dataclass(frozen=True)
class UserListEntry:
    """The authenticated user's list record for one title."""

    id: str
    vote: int | None = None
    labels: tuple[UserLabel, ...] = ()
    started: str | None = None
    finished: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> UserListEntry:
        return cls(
            id=data["id"],
            vote=data.get("vote"),
            labels=_tuple_of(UserLabel, data.get("labels")),
            started=data.get("started"),
            finished=data.get("finished"),
        )

    @property
    def label_ids(self) -> frozenset[int]:
        return frozenset(label.id for label in self.labels)


@dataclass(frozen=True)
class AuthInfo:
    """Identity behind a catalog API token."""

    id: str
    username: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AuthInfo:
        return cls(id=data["id"], username=data.get("username", ""))


# ---------------------------------------------------------------------------
# Self-update
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UpdateMetadata:
    """Information about an available update.

    Args:
        version: New version string.
        notes: Markdown release notes.
        date: Publication date as reported by the release host.
        download_url: Direct URL to the update artifact.
        download_size: Size in bytes (0 when unknown).
        html_url: URL to the release page.
    """

    version: str
    notes: str = ""
    date: str = ""
    download_url: str = ""
    download_size: int = 0
    html_url: str = ""


class ProgressKind(str, Enum):
    """Download lifecycle events emitted by an update backend."""

    STARTED = "started"
    PROGRESS = "progress"
    FINISHED = "finished"


@dataclass(frozen=True)
class UpdateProgressEvent:
    """One download event.

    ``chunk_length`` is the size of the chunk just received and
    ``content_length`` the total size when the host reports it.
    """

    kind: ProgressKind
    chunk_length: int = 0
    content_length: int | None = None

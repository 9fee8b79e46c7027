# vnshelf/services/grouping_service.py

"""Grouping and visibility rules for catalog detail presentation.

Character traits are grouped by category, characters by their role in the
viewed title. Both honour the spoiler switch. The imagery blur policy and
the public tag list live here as well since they share the same concern.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from vnshelf.core.models import CatalogCharacter, CatalogCharacterTrait, CatalogDetail, CatalogImage, CatalogTag
from vnshelf.services.filter_constants import DEFAULT_ROLE, OTHER_TRAIT_GROUP, ROLE_NAMES, ROLE_ORDER, TRAIT_ORDER

logger = logging.getLogger("vnshelf.grouping_service")

__all__ = [
    "CharacterGroup",
    "DEFAULT_TAG_LIMIT",
    "TraitGroup",
    "group_characters",
    "group_traits",
    "is_character_visible",
    "should_blur",
    "visible_character_count",
    "visible_tags",
]

DEFAULT_TAG_LIMIT = 15


@dataclass(frozen=True)
class TraitGroup:
    """One trait category and its traits, in catalog order.

    Spoiler traits are only present when spoilers are shown; check
    ``CatalogCharacterTrait.is_spoiler`` to mark them.
    """

    name: str
    traits: tuple[CatalogCharacterTrait, ...]


@dataclass(frozen=True)
class CharacterGroup:
    """Characters sharing one role, sorted by name."""

    role: str
    characters: tuple[CatalogCharacter, ...]

    @property
    def display_name(self) -> str:
        return ROLE_NAMES.get(self.role, self.role)


def group_traits(traits: Iterable[CatalogCharacterTrait] | None, show_spoilers: bool) -> list[TraitGroup]:
    """Groups traits by category.

    Categories from ``TRAIT_ORDER`` come first in that order, followed by
    the remaining categories in first-seen order. Traits without a
    category go to "Other". With spoilers hidden, spoiler traits are
    dropped and categories left empty disappear.

    Args:
        traits: Flat trait list of one character (None is treated as empty).
        show_spoilers: Whether spoiler traits are kept.

    Returns:
        Ordered list of non-empty TraitGroup.
    """
    if not traits:
        return []

    groups: dict[str, list[CatalogCharacterTrait]] = {}
    for trait in traits:
        if trait.is_spoiler and not show_spoilers:
            continue
        groups.setdefault(trait.group_name or OTHER_TRAIT_GROUP, []).append(trait)

    ordered = [name for name in TRAIT_ORDER if name in groups]
    ordered.extend(name for name in groups if name not in TRAIT_ORDER)
    return [TraitGroup(name=name, traits=tuple(groups[name])) for name in ordered]


def is_character_visible(character: CatalogCharacter, catalog_id: str, show_spoilers: bool) -> bool:
    """False when the character's role in ``catalog_id`` is a spoiler and spoilers are hidden."""
    if show_spoilers:
        return True
    appearance = character.role_in(catalog_id)
    return appearance is None or appearance.spoiler == 0


def group_characters(
    characters: Iterable[CatalogCharacter],
    catalog_id: str,
    show_spoilers: bool,
) -> list[CharacterGroup]:
    """Groups characters by their role in the viewed title.

    Groups follow ``ROLE_ORDER`` (protagonist, main, side, appearance-only).
    A missing role counts as "appears". Roles outside the four known ones
    are not displayed.

    Args:
        characters: Characters of the title.
        catalog_id: The viewed title; selects each character's role entry.
        show_spoilers: Whether spoiler-flagged appearances are kept.

    Returns:
        Ordered list of non-empty CharacterGroup.
    """
    groups: dict[str, list[CatalogCharacter]] = {}
    for character in characters:
        if not is_character_visible(character, catalog_id, show_spoilers):
            continue
        appearance = character.role_in(catalog_id)
        role = (appearance.role if appearance else "") or DEFAULT_ROLE
        groups.setdefault(role, []).append(character)

    unknown = [role for role in groups if role not in ROLE_ORDER]
    if unknown:
        logger.debug("Ignoring unknown character roles: %s", ", ".join(unknown))

    return [
        CharacterGroup(role=role, characters=tuple(sorted(groups[role], key=lambda c: c.name.casefold())))
        for role in ROLE_ORDER
        if groups.get(role)
    ]


def visible_character_count(characters: Iterable[CatalogCharacter], catalog_id: str, show_spoilers: bool) -> int:
    """Number of characters that pass the spoiler rule (the list header count)."""
    return sum(1 for c in characters if is_character_visible(c, catalog_id, show_spoilers))


def visible_tags(
    detail: CatalogDetail | None,
    show_spoilers: bool = False,
    limit: int = DEFAULT_TAG_LIMIT,
) -> list[CatalogTag]:
    """Returns the tags to display for a title, highest rated first.

    Args:
        detail: The title detail (None yields no tags).
        show_spoilers: Whether spoiler tags are kept.
        limit: Maximum number of tags returned.

    Returns:
        Up to ``limit`` tags.
    """
    if detail is None or limit <= 0:
        return []
    tags = [tag for tag in detail.tags if show_spoilers or tag.spoiler == 0]
    tags.sort(key=lambda tag: tag.rating, reverse=True)
    return tags[:limit]


def should_blur(image: CatalogImage | None, enabled: bool, threshold: float = 1.0) -> bool:
    """Decides whether an image is shown blurred.

    Args:
        image: The image reference with its 0-2 sensitivity levels.
        enabled: The user's blur setting.
        threshold: Blur when sexual or violence level is >= this value.

    Returns:
        True if the image must be blurred.
    """
    if not enabled or image is None:
        return False
    return image.sexual >= threshold or image.violence >= threshold

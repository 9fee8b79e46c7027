"""
Configuration - persisted settings and runtime defaults.
Stores the VNDB token, image blur policy, library view preferences
and update schedule in a JSON settings file.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger("vnshelf.config")


__all__ = ["Config", "config", "default_data_dir"]


def default_data_dir() -> Path:
    """Per-user data directory, overridable with ``VNSHELF_DATA_DIR``."""
    override = os.getenv("VNSHELF_DATA_DIR")
    if override:
        return Path(override)
    xdg = os.getenv("XDG_DATA_HOME")
    base = Path(xdg) if xdg else Path.home() / ".local" / "share"
    return base / "vnshelf"


@dataclass
class Config:
    """
    Central configuration handling for the application.
    Manages paths, the catalog token, display policy and UI state.
    """

    DATA_DIR: Path | None = None
    CACHE_DIR: Path | None = None
    SETTINGS_FILE: Path | None = None

    # VNDB
    VNDB_TOKEN: str | None = None
    VNDB_USER_ID: str | None = None  # Filled in by the auth check

    # Imagery: blur when sexual or violence level >= threshold (0-2 scale)
    BLUR_NSFW: bool = False
    BLUR_THRESHOLD: float = 1.0

    # Library view preferences (the search query is never persisted)
    LIBRARY_SORT_KEY: str = "title"
    LIBRARY_SORT_DIRECTION: str = "asc"
    LIBRARY_SHOW_HIDDEN: bool = False

    SEARCH_DEBOUNCE_MS: int = 300

    # Self-update
    UPDATE_REPO: str = "vnshelf/vnshelf"
    UPDATE_CHECK_DELAY_MS: int = 3000
    UPDATE_CHECK_INTERVAL_MS: int = 0  # 0 = startup check only

    # Discord Rich Presence (the presence client itself is host-side)
    DISCORD_RPC_ENABLED: bool = True
    DISCORD_BTN_VNDB_GAME: bool = True
    DISCORD_BTN_VNDB_PROFILE: bool = False
    DISCORD_BTN_GITHUB: bool = False

    def __post_init__(self):
        """Resolve paths, create directories and load settings after instantiation."""
        if self.DATA_DIR is None:
            self.DATA_DIR = default_data_dir()
        if self.CACHE_DIR is None:
            self.CACHE_DIR = self.DATA_DIR / "cache"
        if self.SETTINGS_FILE is None:
            self.SETTINGS_FILE = self.DATA_DIR / "settings.json"

        try:
            self.CACHE_DIR.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Could not create data directory %s: %s", self.CACHE_DIR, e)

        self._load_settings()

        load_dotenv()
        env_token = os.getenv("VNDB_TOKEN")
        if env_token:
            self.VNDB_TOKEN = env_token

    def _load_settings(self) -> None:
        """Load settings from JSON file."""
        if not self.SETTINGS_FILE.exists():
            return

        try:
            with open(self.SETTINGS_FILE, "r", encoding="utf-8") as f:
                data = json.load(f)

                self.VNDB_TOKEN = data.get("vndb_token", self.VNDB_TOKEN)
                self.VNDB_USER_ID = data.get("vndb_user_id", self.VNDB_USER_ID)
                self.BLUR_NSFW = data.get("blur_nsfw", self.BLUR_NSFW)
                self.BLUR_THRESHOLD = float(data.get("blur_threshold", self.BLUR_THRESHOLD))

                # Load UI State
                self.LIBRARY_SORT_KEY = data.get("library_sort_key", self.LIBRARY_SORT_KEY)
                self.LIBRARY_SORT_DIRECTION = data.get("library_sort_direction", self.LIBRARY_SORT_DIRECTION)
                self.LIBRARY_SHOW_HIDDEN = data.get("library_show_hidden", self.LIBRARY_SHOW_HIDDEN)

                self.UPDATE_CHECK_INTERVAL_MS = data.get("update_check_interval_ms", self.UPDATE_CHECK_INTERVAL_MS)

                self.DISCORD_RPC_ENABLED = data.get("discord_rpc_enabled", self.DISCORD_RPC_ENABLED)
                self.DISCORD_BTN_VNDB_GAME = data.get("discord_btn_vndb_game", self.DISCORD_BTN_VNDB_GAME)
                self.DISCORD_BTN_VNDB_PROFILE = data.get("discord_btn_vndb_profile", self.DISCORD_BTN_VNDB_PROFILE)
                self.DISCORD_BTN_GITHUB = data.get("discord_btn_github", self.DISCORD_BTN_GITHUB)

        except (OSError, ValueError) as e:
            logger.error("Could not load settings from %s: %s", self.SETTINGS_FILE, e)

    def save(self) -> None:
        """Save current configuration to JSON file."""
        data = {
            "vndb_token": self.VNDB_TOKEN,
            "vndb_user_id": self.VNDB_USER_ID,
            "blur_nsfw": self.BLUR_NSFW,
            "blur_threshold": self.BLUR_THRESHOLD,
            "library_sort_key": self.LIBRARY_SORT_KEY,
            "library_sort_direction": self.LIBRARY_SORT_DIRECTION,
            "library_show_hidden": self.LIBRARY_SHOW_HIDDEN,
            "update_check_interval_ms": self.UPDATE_CHECK_INTERVAL_MS,
            "discord_rpc_enabled": self.DISCORD_RPC_ENABLED,
            "discord_btn_vndb_game": self.DISCORD_BTN_VNDB_GAME,
            "discord_btn_vndb_profile": self.DISCORD_BTN_VNDB_PROFILE,
            "discord_btn_github": self.DISCORD_BTN_GITHUB,
        }

        try:
            self.SETTINGS_FILE.parent.mkdir(parents=True, exist_ok=True)
            with open(self.SETTINGS_FILE, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            logger.error("Could not save settings to %s: %s", self.SETTINGS_FILE, e)

    def set_token(self, token: str) -> None:
        """Store a new VNDB token. The user id is re-resolved by the next auth check."""
        self.VNDB_TOKEN = token.strip() or None
        self.VNDB_USER_ID = None
        self.save()

    def clear_token(self) -> None:
        """Forget the VNDB token and the user id resolved from it."""
        self.VNDB_TOKEN = None
        self.VNDB_USER_ID = None
        self.save()

    def set_discord_rpc_enabled(self, enabled: bool) -> None:
        self.DISCORD_RPC_ENABLED = bool(enabled)
        self.save()

    def set_discord_buttons(self, vndb_game: bool, vndb_profile: bool, github: bool) -> None:
        """Choose which link buttons the Rich Presence activity shows."""
        self.DISCORD_BTN_VNDB_GAME = bool(vndb_game)
        self.DISCORD_BTN_VNDB_PROFILE = bool(vndb_profile)
        self.DISCORD_BTN_GITHUB = bool(github)
        self.save()


# Global instance
config = Config()

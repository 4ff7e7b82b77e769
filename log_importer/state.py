"""Persisted import state: registered authors and per-channel webhooks.

The state document records, for a single guild:

- ``users``: author tag -> ``{name, avatar}`` (avatar is a data URI or null)
- ``channels``: channel ID -> author tag -> webhook ID

It is rewritten in full after every mutation. YAML is the default encoding;
files ending in ``.json`` are read and written as JSON so state files from
earlier JSON-based importers (which spell the guild key ``guildId``) keep
working.
"""

import json
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Union

import yaml


class StateError(Exception):
    """State file error."""
    pass


class GuildMismatchError(StateError):
    """The state file belongs to a different guild."""
    pass


@dataclass
class UserRecord:
    """A registered author: display name plus optional avatar data URI."""
    name: str
    avatar: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {"name": self.name, "avatar": self.avatar}

    @classmethod
    def from_dict(cls, data: dict) -> "UserRecord":
        """Create from dictionary."""
        if not isinstance(data, dict) or not isinstance(data.get("name"), str):
            raise StateError(f"malformed user record: {data!r}")
        avatar = data.get("avatar")
        if avatar is not None and not isinstance(avatar, str):
            raise StateError(f"malformed avatar in user record: {data!r}")
        return cls(name=data["name"], avatar=avatar)


@dataclass
class ImportState:
    """Everything the importer remembers about one guild."""
    guild_id: str
    users: Dict[str, UserRecord] = field(default_factory=dict)
    channels: Dict[str, Dict[str, str]] = field(default_factory=dict)

    def to_dict(self, guild_key: str = "guild_id") -> dict:
        """Convert to dictionary for serialization."""
        return {
            guild_key: self.guild_id,
            "users": {tag: user.to_dict() for tag, user in self.users.items()},
            "channels": {
                channel_id: dict(hooks) for channel_id, hooks in self.channels.items()
            },
        }

    def webhook_count(self) -> int:
        """Count webhooks across all channels."""
        return sum(len(hooks) for hooks in self.channels.values())

    @classmethod
    def from_dict(cls, data: dict) -> "ImportState":
        """Create from dictionary. Accepts ``guild_id`` or ``guildId``."""
        if not isinstance(data, dict):
            raise StateError("state document must be a mapping")

        guild_id = data.get("guild_id", data.get("guildId"))
        if guild_id is None:
            raise StateError("state document has no guild_id")

        users = data.get("users") or {}
        channels = data.get("channels") or {}
        if not isinstance(users, dict) or not isinstance(channels, dict):
            raise StateError("state document users/channels must be mappings")

        parsed_channels: Dict[str, Dict[str, str]] = {}
        for channel_id, hooks in channels.items():
            if not isinstance(hooks, dict):
                raise StateError(f"malformed webhook map for channel {channel_id}")
            parsed_channels[str(channel_id)] = {
                str(tag): str(hook_id) for tag, hook_id in hooks.items()
            }

        return cls(
            guild_id=str(guild_id),
            users={str(tag): UserRecord.from_dict(user) for tag, user in users.items()},
            channels=parsed_channels,
        )


def parse_snowflake(value: Union[str, int]) -> Optional[int]:
    """Convert a Discord ID to int, or None if it is not a plain ASCII integer."""
    text = str(value)
    if not text.isascii() or not text.isdigit():
        return None
    return int(text)


def _is_json(path: Path) -> bool:
    return path.suffix.lower() == ".json"


def read_state(path: Union[str, Path]) -> ImportState:
    """Parse a state file without checking which guild it belongs to.

    Raises:
        StateError: If the file cannot be read or parsed
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            if _is_json(path):
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise StateError(f"could not read state file {path}: {e}") from e
    return ImportState.from_dict(data)


class StateStore:
    """File-backed state for one guild.

    No locking: a single process is assumed to own the file.
    """

    def __init__(self, path: Union[str, Path], guild_id: Union[str, int]):
        """Open the store, loading existing state if the file exists.

        Args:
            path: State file path (.json for JSON, anything else for YAML)
            guild_id: Guild the state must belong to

        Raises:
            GuildMismatchError: If the file was written for another guild
            StateError: If the file cannot be parsed
        """
        self._path = Path(path)
        self._guild_id = str(guild_id)
        self._state = self.load()

    @property
    def path(self) -> Path:
        """Get the state file path."""
        return self._path

    @property
    def state(self) -> ImportState:
        """Get the in-memory state."""
        return self._state

    def load(self) -> ImportState:
        """Read state from disk, or return a fresh state if there is no file."""
        if not self._path.exists():
            return ImportState(guild_id=self._guild_id)

        state = read_state(self._path)
        if state.guild_id != self._guild_id:
            raise GuildMismatchError(
                f"guild ID from {self._path} ({state.guild_id}) does not match "
                f"the current guild ID ({self._guild_id}); if you want to start "
                f"fresh, delete {self._path}"
            )
        return state

    def save(self) -> None:
        """Write the full state to disk, replacing the previous file atomically."""
        self._path.parent.mkdir(parents=True, exist_ok=True)

        # Atomic write: write to temp file then rename
        fd, temp_path = tempfile.mkstemp(
            dir=self._path.parent, suffix=self._path.suffix or ".yaml"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                if _is_json(self._path):
                    json.dump(self._state.to_dict(guild_key="guildId"), f, indent=2)
                else:
                    yaml.safe_dump(
                        self._state.to_dict(),
                        f,
                        default_flow_style=False,
                        allow_unicode=True,
                        sort_keys=False,
                    )
            os.replace(temp_path, self._path)
        except Exception:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

    # === Users ===

    def has_user(self, tag: str) -> bool:
        return tag in self._state.users

    def get_user(self, tag: str) -> Optional[UserRecord]:
        return self._state.users.get(tag)

    def add_user(self, tag: str, user: UserRecord) -> None:
        """Record a new user and persist.

        Raises:
            StateError: If the tag is already registered
        """
        if tag in self._state.users:
            raise StateError(f"user {tag} already registered")
        self._state.users[tag] = user
        self.save()

    # === Webhooks ===

    def get_webhook_id(self, channel_id: str, tag: str) -> Optional[str]:
        return self._state.channels.get(channel_id, {}).get(tag)

    def set_webhook_id(self, channel_id: str, tag: str, webhook_id: str) -> None:
        """Record the webhook for a (channel, user) pair and persist.

        A pair is mapped at most once; existing mappings are never replaced.

        Raises:
            StateError: If the pair already has a webhook
        """
        hooks = self._state.channels.setdefault(channel_id, {})
        if tag in hooks:
            raise StateError(
                f"channel {channel_id} already has webhook {hooks[tag]} for user {tag}"
            )
        hooks[tag] = str(webhook_id)
        self.save()

    def webhook_count(self) -> int:
        """Count webhooks across all channels."""
        return self._state.webhook_count()

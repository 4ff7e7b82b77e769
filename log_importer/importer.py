"""Replay external chat logs into a Discord guild through per-author webhooks.

Each historical author gets one webhook per destination channel, named and
imaged after the author, so imported messages appear under the original
author's name. Webhook IDs are persisted as soon as they are created, so a
(channel, author) pair is never given a second webhook by a later run.

Typical use::

    importer = await init(token, guild_id, "state.yaml")
    await importer.add_user("alice#1", "Alice", "https://example.com/a.png")
    channel_id = await importer.find_or_create_channel_named("general")
    await importer.post(channel_id, "alice#1", "hello world")
    await importer.close()
"""

import asyncio
import re
import sys
from pathlib import Path
from typing import Dict, List, Optional, Union

import aiohttp
import discord

from .avatars import FETCH_TIMEOUT, AvatarError, decode_data_uri, is_url, resolve_avatar
from .config import Config, DEFAULT_READY_TIMEOUT, get_config
from .rate_limiter import Throttle
from .state import GuildMismatchError, StateStore, UserRecord, parse_snowflake
from .webhook_cache import WebhookCache


# Stricter than what Discord accepts
CHANNEL_NAME_PATTERN = re.compile(r"[a-zA-Z_-]+")
MAX_CHANNEL_NAME_LENGTH = 100

Attachment = Union[str, Path, discord.File]


class ImporterError(Exception):
    """Importer error."""
    pass


class GuildNotFoundError(ImporterError):
    """The bot cannot see the target guild."""
    pass


class DuplicateAuthorError(ImporterError):
    """An author tag was registered twice."""
    pass


class AvatarResolutionError(ImporterError):
    """An author's avatar could not be turned into image data."""
    pass


class UnknownAuthorError(ImporterError):
    """A post referenced an author tag that was never registered."""
    pass


class UnknownChannelError(ImporterError):
    """A post referenced a channel ID the guild does not have."""
    pass


class WrongChannelKindError(ImporterError):
    """The target channel exists but is not a plain text channel."""
    pass


class InvalidChannelNameError(ImporterError):
    """A channel name failed validation."""
    pass


def _notice(message: str) -> None:
    print(message, file=sys.stderr)


def validate_channel_name(name: str) -> None:
    """Check a channel name: 1-100 ASCII letters, hyphens or underscores.

    Raises:
        InvalidChannelNameError: If the name is not acceptable
    """
    if (
        not name
        or len(name) > MAX_CHANNEL_NAME_LENGTH
        or not CHANNEL_NAME_PATTERN.fullmatch(name)
    ):
        raise InvalidChannelNameError(f"{name!r} is not a valid channel name")


class Importer:
    """Posts historical messages into one guild as their original authors.

    Calls must not overlap: await each add_user/find_or_create/post before
    issuing the next. Two concurrent first posts for the same (channel,
    author) pair can each create a webhook.
    """

    def __init__(
        self,
        client: discord.Client,
        guild: discord.Guild,
        store: StateStore,
        throttle: Optional[Throttle] = None,
        connect_task: Optional[asyncio.Task] = None,
    ):
        """Initialize the importer.

        Args:
            client: Logged-in, ready Discord client
            guild: Destination guild
            store: State store bound to the same guild
            throttle: Post-send pause (default 3000ms)
            connect_task: Gateway connection task to wait for on close
        """
        self.client = client
        self.guild = guild
        self._store = store
        self._throttle = throttle or Throttle()
        self._connect_task = connect_task
        self._webhooks = WebhookCache(client)
        # Channels created this run; the gateway cache may not have them yet
        self._created_channels: Dict[str, discord.abc.GuildChannel] = {}
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def store(self) -> StateStore:
        return self._store

    @property
    def webhooks(self) -> WebhookCache:
        return self._webhooks

    async def __aenter__(self) -> "Importer":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure the avatar download session is created."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=FETCH_TIMEOUT)
        return self._session

    async def close(self) -> None:
        """Close the Discord session and the avatar download session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
            self._session = None
        await self.client.close()
        if self._connect_task is not None:
            await asyncio.gather(self._connect_task, return_exceptions=True)
            self._connect_task = None

    # === Users ===

    async def add_user(
        self,
        tag: str,
        name: str,
        avatar: Optional[Union[str, Path, bytes]] = None,
    ) -> None:
        """Register an author.

        Args:
            tag: Unique identifier of the author in the source logs
            name: Display name used for the author's webhooks
            avatar: Optional image URL, local path, bytes or data URI

        Raises:
            DuplicateAuthorError: If the tag is already registered
            AvatarResolutionError: If the avatar cannot be resolved; nothing is stored
        """
        if self._store.has_user(tag):
            raise DuplicateAuthorError(f"user {tag} already configured")

        avatar_uri = None
        if avatar is not None:
            try:
                session = await self._ensure_session() if is_url(avatar) else None
                avatar_uri = await resolve_avatar(avatar, session)
            except AvatarError as e:
                raise AvatarResolutionError(str(e)) from e

        self._store.add_user(tag, UserRecord(name=name, avatar=avatar_uri))

    def has_user(self, tag: str) -> bool:
        return self._store.has_user(tag)

    # === Channels ===

    def _get_channel(self, channel_id: str) -> Optional[discord.abc.GuildChannel]:
        channel = None
        snowflake = parse_snowflake(channel_id)
        if snowflake is not None:
            channel = self.guild.get_channel(snowflake)
        if channel is None:
            channel = self._created_channels.get(channel_id)
        return channel

    def find_channel_named(self, name: str) -> Optional[str]:
        """Find a channel by exact name in the cached channel list.

        Returns:
            Channel ID, or None if there is no such channel
        """
        channel = discord.utils.get(self.guild.channels, name=name)
        if channel is None:
            channel = discord.utils.get(self._created_channels.values(), name=name)
        return str(channel.id) if channel is not None else None

    async def find_or_create_channel_named(self, name: str) -> str:
        """Return the ID of the channel with this name, creating a text channel if needed.

        Raises:
            InvalidChannelNameError: If the name fails validation (checked before any request)
            discord.HTTPException: If channel creation fails
        """
        validate_channel_name(name)

        existing = self.find_channel_named(name)
        if existing is not None:
            return existing

        _notice(f"creating channel #{name} in guild {self.guild.id}")
        channel = await self.guild.create_text_channel(name)
        channel_id = str(channel.id)
        self._created_channels[channel_id] = channel
        return channel_id

    # === Posting ===

    async def _provision_webhook(
        self,
        channel: discord.TextChannel,
        channel_id: str,
        user_tag: str,
        user: UserRecord,
    ) -> discord.Webhook:
        """Create the webhook for a (channel, user) pair and record it before use."""
        _notice(f"creating webhook in channel {channel_id} for user {user_tag}")

        avatar = None
        if user.avatar is not None:
            try:
                avatar = decode_data_uri(user.avatar)
            except AvatarError as e:
                raise AvatarResolutionError(
                    f"stored avatar for user {user_tag} is unusable: {e}"
                ) from e

        webhook = await channel.create_webhook(name=user.name, avatar=avatar)
        # Persist before sending anything, so a crash cannot orphan the webhook
        self._store.set_webhook_id(channel_id, user_tag, str(webhook.id))
        self._webhooks.put(webhook)
        return webhook

    @staticmethod
    def _to_files(files: Optional[List[Attachment]]) -> List[discord.File]:
        return [f if isinstance(f, discord.File) else discord.File(f) for f in files or []]

    async def post(
        self,
        channel_id: Union[str, int],
        user_tag: str,
        message: str,
        files: Optional[List[Attachment]] = None,
    ) -> None:
        """Post a message into a channel as a registered author.

        Creates the author's webhook in the channel on first use, sends the
        message through it, then pauses for the configured delay. Failed
        sends are not retried.

        Args:
            channel_id: Channel ID, as returned by find_or_create_channel_named
            user_tag: Tag the author was registered with
            message: Message content
            files: Optional attachments (paths or discord.File objects)

        Raises:
            UnknownAuthorError: If the author is not registered
            UnknownChannelError: If the channel is not in the guild
            WrongChannelKindError: If the channel is not a text channel
            discord.HTTPException: If creating, fetching or sending fails
        """
        channel_id = str(channel_id)

        user = self._store.get_user(user_tag)
        if user is None:
            raise UnknownAuthorError(
                f"unknown user {user_tag}; add them with add_user first"
            )

        channel = self._get_channel(channel_id)
        if channel is None:
            raise UnknownChannelError(
                f"unknown channel {channel_id}; did you pass an actual channel ID, "
                f"as returned by find_channel_named?"
            )
        if channel.type != discord.ChannelType.text:
            raise WrongChannelKindError(
                f"{channel_id} is not a text channel (is instead {channel.type.name})"
            )

        webhook_id = self._store.get_webhook_id(channel_id, user_tag)
        if webhook_id is None:
            webhook = await self._provision_webhook(channel, channel_id, user_tag, user)
        else:
            webhook = await self._webhooks.get_or_fetch(webhook_id)

        attachments = self._to_files(files)
        if attachments:
            await webhook.send(content=message, files=attachments)
        else:
            await webhook.send(content=message)

        await self._throttle.wait()


async def _wait_until_ready(
    client: discord.Client,
    connect_task: asyncio.Task,
    timeout: float,
) -> None:
    """Wait for the gateway to become ready, surfacing connection failures."""
    ready = asyncio.ensure_future(client.wait_until_ready())
    done, _ = await asyncio.wait(
        {ready, connect_task},
        timeout=timeout,
        return_when=asyncio.FIRST_COMPLETED,
    )
    if ready in done:
        return

    ready.cancel()
    if connect_task in done:
        # Re-raises the connection error, if there was one
        connect_task.result()
        raise ImporterError("Discord connection closed before becoming ready.")
    raise ImporterError(
        "Timed out connecting to Discord. Check your network connection."
    )


async def init(
    token: str,
    guild_id: Union[str, int],
    state_file: Union[str, Path],
    pause_ms: int = 3000,
    ready_timeout: float = DEFAULT_READY_TIMEOUT,
) -> Importer:
    """Connect to Discord and return an importer bound to one guild.

    Args:
        token: Bot token
        guild_id: Destination guild ID
        state_file: State file path (created on first change)
        pause_ms: Pause after each posted message in milliseconds
        ready_timeout: Seconds to wait for the gateway session

    Raises:
        GuildMismatchError: If the state file belongs to another guild
        StateError: If the state file cannot be read
        GuildNotFoundError: If the bot cannot see the guild
        discord.LoginFailure: If the token is rejected
    """
    guild_id = str(guild_id)
    # Checked before connecting so a wrong state file fails fast
    store = StateStore(state_file, guild_id)
    throttle = Throttle(pause_ms)

    client = discord.Client(intents=discord.Intents(guilds=True))
    connect_task = None
    try:
        await client.login(token)
        connect_task = asyncio.create_task(client.connect())
        await _wait_until_ready(client, connect_task, ready_timeout)

        snowflake = parse_snowflake(guild_id)
        guild = client.get_guild(snowflake) if snowflake is not None else None
        if guild is None:
            raise GuildNotFoundError(f"could not find guild {guild_id}")
    except BaseException:
        await client.close()
        if connect_task is not None:
            await asyncio.gather(connect_task, return_exceptions=True)
        raise

    return Importer(client, guild, store, throttle=throttle, connect_task=connect_task)


async def init_from_config(config: Optional[Config] = None) -> Importer:
    """Create an importer from .env and config/importer.yaml.

    Raises:
        ConfigError: If the token or guild ID is missing
    """
    config = config or get_config()
    return await init(
        config.bot_token,
        config.guild_id,
        config.state_file,
        pause_ms=config.pause_ms,
        ready_timeout=config.ready_timeout,
    )


__all__ = [
    "Attachment",
    "AvatarResolutionError",
    "DuplicateAuthorError",
    "GuildMismatchError",
    "GuildNotFoundError",
    "Importer",
    "ImporterError",
    "InvalidChannelNameError",
    "UnknownAuthorError",
    "UnknownChannelError",
    "WrongChannelKindError",
    "init",
    "init_from_config",
    "validate_channel_name",
]

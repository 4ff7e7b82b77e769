"""Shared fixtures: in-memory stand-ins for the discord.py objects the importer uses."""

import itertools
import tempfile
from pathlib import Path

import discord
import pytest

from log_importer.importer import Importer
from log_importer.rate_limiter import Throttle
from log_importer.state import StateStore


GUILD_ID = "111111111111111111"
TEXT_CHANNEL_ID = 222222222222222222
VOICE_CHANNEL_ID = 333333333333333333

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 24


class FakeWebhook:
    """Webhook that records what it was asked to send."""

    def __init__(self, webhook_id, name, avatar, events):
        self.id = webhook_id
        self.name = name
        self.avatar = avatar
        self.sent = []
        self._events = events

    async def send(self, content=None, files=None):
        self._events.append(("send", self.id, content))
        self.sent.append({"content": content, "files": files})


class FakeChannel:
    def __init__(self, channel_id, name, client, channel_type=discord.ChannelType.text):
        self.id = channel_id
        self.name = name
        self.type = channel_type
        self._client = client

    async def create_webhook(self, name, avatar=None):
        return self._client.register_webhook(name, avatar)


class FakeClient:
    """Client holding every webhook 'on the server'."""

    def __init__(self):
        self.events = []
        self.webhooks = {}
        self.fetched = []
        self.closed = False
        self._ids = itertools.count(900000000000000000)

    def register_webhook(self, name, avatar):
        hook = FakeWebhook(next(self._ids), name, avatar, self.events)
        self.webhooks[hook.id] = hook
        self.events.append(("create_webhook", hook.id, name))
        return hook

    async def fetch_webhook(self, webhook_id):
        self.fetched.append(webhook_id)
        if webhook_id not in self.webhooks:
            raise discord.NotFound(FakeResponse(404), "Unknown Webhook")
        return self.webhooks[webhook_id]

    async def close(self):
        self.closed = True


class FakeResponse:
    def __init__(self, status):
        self.status = status
        self.reason = "Not Found"


class FakeGuild:
    """Guild whose channel cache does not pick up newly created channels."""

    def __init__(self, guild_id, client):
        self.id = int(guild_id)
        self._client = client
        self._channels = {}
        self.created_channels = []
        self._ids = itertools.count(500000000000000000)

    def add_channel(self, channel_id, name, channel_type=discord.ChannelType.text):
        channel = FakeChannel(channel_id, name, self._client, channel_type)
        self._channels[channel_id] = channel
        return channel

    @property
    def channels(self):
        return list(self._channels.values())

    def get_channel(self, channel_id):
        return self._channels.get(channel_id)

    async def create_text_channel(self, name):
        channel = FakeChannel(next(self._ids), name, self._client)
        self.created_channels.append(channel)
        return channel


class RecordingThrottle(Throttle):
    """Throttle that records waits instead of sleeping."""

    def __init__(self, events, pause_ms=3000):
        super().__init__(pause_ms)
        self.waits = []
        self._events = events

    async def wait(self):
        self._events.append(("throttle", self.delay))
        self.waits.append(self.delay)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for state files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def state_path(temp_dir):
    return temp_dir / "state.yaml"


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def guild(client):
    guild = FakeGuild(GUILD_ID, client)
    guild.add_channel(TEXT_CHANNEL_ID, "general")
    guild.add_channel(VOICE_CHANNEL_ID, "lounge", discord.ChannelType.voice)
    return guild


@pytest.fixture
def throttle(client):
    return RecordingThrottle(client.events)


@pytest.fixture
def make_importer(client, guild, throttle, state_path):
    """Build importers sharing one client, guild and state file."""

    def _make(fresh_client=False):
        bound_client = FakeClient() if fresh_client else client
        if fresh_client:
            bound_client.webhooks = client.webhooks
        return Importer(
            bound_client,
            guild,
            StateStore(state_path, GUILD_ID),
            throttle=throttle,
        )

    return _make


@pytest.fixture
def importer(make_importer):
    return make_importer()


@pytest.fixture
def png_file(temp_dir):
    path = temp_dir / "avatar.png"
    path.write_bytes(PNG_BYTES)
    return path

"""In-memory cache of live webhook objects keyed by webhook ID.

The state file is the source of truth for which webhook belongs to which
(channel, user) pair. This cache only saves a fetch per message; dropping it
costs one ``fetch_webhook`` call per webhook on next use.
"""

from typing import Dict, Optional

import discord

from .state import StateError, parse_snowflake


class WebhookCache:
    """Get-or-fetch cache of ``discord.Webhook`` objects."""

    def __init__(self, client: discord.Client):
        self._client = client
        self._hooks: Dict[str, discord.Webhook] = {}

    def __contains__(self, webhook_id: str) -> bool:
        return webhook_id in self._hooks

    def __len__(self) -> int:
        return len(self._hooks)

    def get(self, webhook_id: str) -> Optional[discord.Webhook]:
        return self._hooks.get(webhook_id)

    def put(self, webhook: discord.Webhook) -> None:
        """Cache a webhook under its ID."""
        self._hooks[str(webhook.id)] = webhook

    async def get_or_fetch(self, webhook_id: str) -> discord.Webhook:
        """Return the cached webhook, fetching it from Discord on a miss.

        Raises:
            StateError: If the stored ID is not a Discord ID
            discord.HTTPException: If the webhook cannot be fetched
        """
        hook = self._hooks.get(webhook_id)
        if hook is None:
            snowflake = parse_snowflake(webhook_id)
            if snowflake is None:
                raise StateError(f"stored webhook ID {webhook_id!r} is not a Discord ID")
            hook = await self._client.fetch_webhook(snowflake)
            self._hooks[webhook_id] = hook
        return hook

    def clear(self) -> None:
        self._hooks.clear()

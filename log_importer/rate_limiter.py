"""Post-send throttling for webhook delivery.

Webhooks are limited to 30 requests per minute. That limit is per webhook,
but the importer does not coordinate across webhooks: it pauses for a fixed
delay after every message. The 3000ms default is therefore more than needed,
though not by much.
"""

import asyncio


def format_duration(seconds: float) -> str:
    """Format duration in human-readable format.

    Args:
        seconds: Duration in seconds

    Returns:
        Human-readable duration string (e.g., "5s", "2m 30s", "1h 15m")
    """
    if seconds < 60:
        return f"{int(seconds)}s"
    elif seconds < 3600:
        minutes = int(seconds / 60)
        secs = int(seconds % 60)
        return f"{minutes}m {secs}s"
    else:
        hours = int(seconds / 3600)
        minutes = int((seconds % 3600) / 60)
        return f"{hours}h {minutes}m"


def estimate_import_time(message_count: int, pause_ms: int) -> float:
    """Estimate the minimum time to import a number of messages.

    Only the mandatory pauses are counted; request latency comes on top.

    Args:
        message_count: Number of messages to post
        pause_ms: Pause after each message in milliseconds

    Returns:
        Estimated time in seconds
    """
    if message_count <= 0:
        return 0.0
    return message_count * pause_ms / 1000.0


class Throttle:
    """Fixed pause applied after every sent message."""

    def __init__(self, pause_ms: int = 3000):
        """Initialize throttle.

        Args:
            pause_ms: Delay after each send in milliseconds
        """
        if pause_ms < 0:
            raise ValueError(f"pause_ms must not be negative, got {pause_ms}")
        self.pause_ms = pause_ms

    @property
    def delay(self) -> float:
        """Delay in seconds."""
        return self.pause_ms / 1000.0

    async def wait(self):
        """Sleep for the configured delay."""
        await asyncio.sleep(self.delay)

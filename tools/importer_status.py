#!/usr/bin/env python3
"""Importer status tool - Summarize an import state file.

Usage:
    python tools/importer_status.py
    python tools/importer_status.py --state-file data/import_state.yaml --guild GUILD_ID
    python tools/importer_status.py --messages 5000
    python tools/importer_status.py --json

Does not connect to Discord.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Optional

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from log_importer.config import ConfigError, get_config
from log_importer.rate_limiter import estimate_import_time, format_duration
from log_importer.state import ImportState, StateError, StateStore, read_state


def load_state(state_file: Path, guild_id: Optional[str]) -> ImportState:
    """Load a state file, checking its guild when one is given.

    Without a guild ID the file is read as-is, whichever guild it belongs to.
    """
    if guild_id is not None:
        return StateStore(state_file, guild_id).state

    if not state_file.exists():
        raise StateError(f"no state file at {state_file}")
    return read_state(state_file)


def build_summary(state: ImportState, state_file: Path, messages: int, pause_ms: int) -> dict:
    """Collect status figures for display."""
    return {
        "state_file": str(state_file),
        "guild_id": state.guild_id,
        "users": {
            tag: {"name": user.name, "has_avatar": user.avatar is not None}
            for tag, user in sorted(state.users.items())
        },
        "channels": {
            channel_id: sorted(hooks) for channel_id, hooks in sorted(state.channels.items())
        },
        "webhook_count": state.webhook_count(),
        "pause_ms": pause_ms,
        "messages": messages,
        "estimated_seconds": estimate_import_time(messages, pause_ms),
    }


def print_summary(summary: dict) -> None:
    print(f"State file: {summary['state_file']}")
    print(f"Guild:      {summary['guild_id']}")
    print()

    users = summary["users"]
    print(f"Registered authors: {len(users)}")
    if users:
        print(f"  {'Tag':<30} {'Name':<30} {'Avatar':<6}")
        print("  " + "-" * 68)
        for tag, user in users.items():
            avatar = "yes" if user["has_avatar"] else "no"
            print(f"  {tag:<30} {user['name']:<30} {avatar:<6}")
    print()

    channels = summary["channels"]
    print(f"Webhooks: {summary['webhook_count']} across {len(channels)} channel(s)")
    for channel_id, tags in channels.items():
        print(f"  {channel_id:<20} {len(tags)} webhook(s): {', '.join(tags)}")

    if summary["messages"] > 0:
        print()
        duration = format_duration(summary["estimated_seconds"])
        print(
            f"Posting {summary['messages']} message(s) at {summary['pause_ms']}ms "
            f"per message takes at least {duration}"
        )


def main():
    parser = argparse.ArgumentParser(
        description="Summarize a Discord log import state file"
    )
    parser.add_argument(
        "--state-file",
        metavar="PATH",
        help="State file (default: state_file from config/importer.yaml)"
    )
    parser.add_argument(
        "--guild",
        metavar="GUILD_ID",
        help="Expected guild ID (default: guild_id from config when --state-file is not given)"
    )
    parser.add_argument(
        "--messages",
        type=int,
        default=0,
        metavar="N",
        help="Estimate the time needed to post N more messages"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON"
    )

    args = parser.parse_args()

    try:
        config = get_config()
        state_file = Path(args.state_file) if args.state_file else config.state_file
        guild_id = args.guild
        if guild_id is None and not args.state_file:
            guild_id = config.guild_id

        state = load_state(state_file, guild_id)
        summary = build_summary(state, state_file, args.messages, config.pause_ms)

    except ConfigError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        sys.exit(1)
    except StateError as e:
        print(f"State Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.json:
        print(json.dumps(summary, indent=2))
    else:
        print_summary(summary)


if __name__ == "__main__":
    main()

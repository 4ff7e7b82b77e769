"""Discord log importer library modules."""

from .avatars import (
    AvatarError,
    decode_data_uri,
    detect_image_type,
    is_url,
    resolve_avatar,
)
from .config import Config, ConfigError, get_config, reload_config
from .importer import (
    AvatarResolutionError,
    DuplicateAuthorError,
    GuildNotFoundError,
    Importer,
    ImporterError,
    InvalidChannelNameError,
    UnknownAuthorError,
    UnknownChannelError,
    WrongChannelKindError,
    init,
    init_from_config,
    validate_channel_name,
)
from .rate_limiter import Throttle, estimate_import_time, format_duration
from .state import (
    GuildMismatchError,
    ImportState,
    StateError,
    StateStore,
    UserRecord,
    parse_snowflake,
    read_state,
)
from .webhook_cache import WebhookCache

__all__ = [
    # Avatars
    "AvatarError",
    "decode_data_uri",
    "detect_image_type",
    "is_url",
    "resolve_avatar",
    # Config
    "Config",
    "ConfigError",
    "get_config",
    "reload_config",
    # Importer
    "AvatarResolutionError",
    "DuplicateAuthorError",
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
    # Rate Limiter
    "Throttle",
    "estimate_import_time",
    "format_duration",
    # State
    "GuildMismatchError",
    "ImportState",
    "StateError",
    "StateStore",
    "UserRecord",
    "parse_snowflake",
    "read_state",
    # Webhook Cache
    "WebhookCache",
]

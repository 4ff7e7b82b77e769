"""Avatar resolution.

Webhook avatars are stored as self-contained data URIs
(``data:image/png;base64,...``) so a state file never depends on a remote
URL that may expire.
"""

import asyncio
import base64
import binascii
import re
from pathlib import Path
from typing import Optional, Union

import aiohttp


# Supported image signatures, checked against the first bytes of the file
IMAGE_SIGNATURES = [
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
]

DATA_URI_PATTERN = re.compile(r"^data:(image/[a-z]+);base64,(.+)$", re.DOTALL)

FETCH_TIMEOUT = aiohttp.ClientTimeout(total=30)


class AvatarError(Exception):
    """Avatar could not be resolved to image data."""
    pass


def detect_image_type(data: bytes) -> Optional[str]:
    """Return the MIME type of an image from its magic bytes, or None."""
    for signature, mime_type in IMAGE_SIGNATURES:
        if data.startswith(signature):
            return mime_type
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


def encode_data_uri(data: bytes) -> str:
    """Encode image bytes as a data URI.

    Raises:
        AvatarError: If the bytes are not a supported image type
    """
    mime_type = detect_image_type(data)
    if mime_type is None:
        raise AvatarError("unsupported image type (expected PNG, JPEG, GIF or WEBP)")
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


def decode_data_uri(uri: str) -> bytes:
    """Decode a data URI produced by encode_data_uri back into image bytes.

    Raises:
        AvatarError: If the URI is malformed
    """
    match = DATA_URI_PATTERN.match(uri)
    if not match:
        raise AvatarError("not a base64 image data URI")
    try:
        return base64.b64decode(match.group(2), validate=True)
    except (binascii.Error, ValueError) as e:
        raise AvatarError(f"invalid base64 in data URI: {e}") from e


def is_url(source: Union[str, Path, bytes]) -> bool:
    """Check whether an avatar source is an http(s) URL."""
    return isinstance(source, str) and source.startswith(("http://", "https://"))


async def _fetch_url(url: str, session: Optional[aiohttp.ClientSession]) -> bytes:
    """Download an avatar over HTTP."""
    owns_session = session is None
    if owns_session:
        session = aiohttp.ClientSession(timeout=FETCH_TIMEOUT)
    try:
        async with session.get(url) as resp:
            if not resp.ok:
                raise AvatarError(f"HTTP {resp.status} fetching {url}")
            return await resp.read()
    finally:
        if owns_session:
            await session.close()


async def resolve_avatar(
    source: Union[str, Path, bytes],
    session: Optional[aiohttp.ClientSession] = None,
) -> str:
    """Resolve an avatar source into a data URI.

    Args:
        source: http(s) URL, local file path, raw image bytes, or a data URI
        session: Optional aiohttp session to reuse for URL downloads

    Returns:
        Data URI for the image

    Raises:
        AvatarError: If the avatar cannot be fetched, read or decoded
    """
    try:
        if isinstance(source, bytes):
            return encode_data_uri(source)

        text = str(source)
        if text.startswith("data:"):
            # Round-trip to validate both the encoding and the image type
            return encode_data_uri(decode_data_uri(text))

        if is_url(source):
            data = await _fetch_url(text, session)
        else:
            data = await asyncio.to_thread(Path(text).expanduser().read_bytes)
        return encode_data_uri(data)

    except AvatarError as e:
        raise AvatarError(f"could not resolve avatar {_describe(source)}: {e}") from e
    except (OSError, ValueError, asyncio.TimeoutError, aiohttp.ClientError) as e:
        raise AvatarError(f"could not resolve avatar {_describe(source)}: {e}") from e


def _describe(source: Union[str, Path, bytes]) -> str:
    if isinstance(source, bytes):
        return f"<{len(source)} bytes>"
    text = str(source)
    if text.startswith("data:"):
        return text[:32] + "..."
    return text

"""Shared utility functions for xhs-assist.

Pure functions for image payloads and model output cleanup, with no
network or CLI dependencies.
"""

import base64
import binascii
import re

DEFAULT_IMAGE_TYPE = "image/jpeg"

_FENCE_RE = re.compile(r"```[A-Za-z0-9_-]*[ \t]*\r?\n?(.*?)\r?\n?[ \t]*```", re.DOTALL)
_DATA_URI_RE = re.compile(r"^data:(?P<type>[\w.+-]+/[\w.+-]+)?(?P<params>(;[^,;]+)*?);base64,(?P<data>.*)$", re.DOTALL)


def strip_code_fence(text: str) -> str:
    """Remove a markdown code fence (```json ... ```) wrapped around text.

    Models asked for bare JSON often answer with a fenced block anyway,
    sometimes preceded by a sentence. The first fenced block wins; text
    without a fence is returned stripped. An opening fence that is never
    closed is dropped as well.
    """
    stripped = text.strip()
    match = _FENCE_RE.search(stripped)
    if match:
        return match.group(1).strip()

    if stripped.startswith("```"):
        first_newline = stripped.find("\n")
        if first_newline == -1:
            return ""
        return stripped[first_newline + 1:].strip()

    return stripped


def is_remote_url(value: str) -> bool:
    """Check if an image payload is an http(s) URL."""
    return value.startswith(("http://", "https://"))


def is_data_uri(value: str) -> bool:
    """Check if an image payload is a base64 data URI."""
    return _DATA_URI_RE.match(value) is not None


def split_data_uri(value: str) -> tuple[str, str]:
    """Split a data URI into (media_type, base64_data).

    Raises:
        ValueError: If value is not a base64 data URI.
    """
    match = _DATA_URI_RE.match(value)
    if not match:
        raise ValueError("Not a base64 data URI")
    return match.group("type") or DEFAULT_IMAGE_TYPE, match.group("data").strip()


def sniff_image_type(data: bytes) -> str:
    """Guess an image media type from its leading bytes."""
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data.startswith((b"GIF87a", b"GIF89a")):
        return "image/gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return DEFAULT_IMAGE_TYPE


def image_to_base64(image: bytes | str) -> tuple[str, str]:
    """Convert an inline image payload to (media_type, base64_data).

    Accepts raw bytes, a data URI or a bare base64 string.

    Raises:
        ValueError: If the payload is a remote URL or is not valid base64.
    """
    if isinstance(image, (bytes, bytearray)):
        data = bytes(image)
        return sniff_image_type(data), base64.b64encode(data).decode("ascii")

    if is_remote_url(image):
        raise ValueError("Remote image URLs cannot be inlined")

    if is_data_uri(image):
        return split_data_uri(image)

    encoded = "".join(image.split())
    try:
        head = base64.b64decode(encoded[:24], validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Invalid base64 image payload: {e}") from e
    return sniff_image_type(head), encoded


def image_to_data_uri(image: bytes | str) -> str:
    """Convert an image payload to a data URI; remote URLs pass through unchanged."""
    if isinstance(image, str) and (is_remote_url(image) or is_data_uri(image)):
        return image
    media_type, data = image_to_base64(image)
    return f"data:{media_type};base64,{data}"


def mask_secret(value: str | None) -> str:
    """Mask an API key for display, keeping its first and last four characters."""
    if not value:
        return ""
    return value[:4] + "..." + value[-4:] if len(value) > 8 else "****"

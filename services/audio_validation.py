# services/audio_validation.py
import base64
import binascii
import logging
import re

logger = logging.getLogger(__name__)

# WebM files start with the EBML header magic number
EBML_SIGNATURE = b"\x1a\x45\xdf\xa3"

_WHITESPACE = re.compile(r"\s+")


def decode_audio(data: str) -> bytes:
    """
    Decode base64 audio text, raising ValueError on malformed input.

    Browser clients may send MIME line-wrapped, unpadded or URL-safe
    base64; all of those decode to the same bytes here.
    """
    try:
        text = _WHITESPACE.sub("", data).replace("-", "+").replace("_", "/")
        text = text.rstrip("=")
        if len(text) % 4 == 1:
            raise ValueError("truncated base64 input")
        text += "=" * (-len(text) % 4)
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise ValueError(f"Audio data is not valid base64: {e}") from e


def is_valid_webm(data: str) -> bool:
    """Check that base64 audio decodes to bytes starting with the EBML signature"""
    try:
        buffer = decode_audio(data)
    except ValueError as e:
        logger.warning(f"Error validating WebM data: {e}")
        return False

    return len(buffer) >= 4 and buffer[:4] == EBML_SIGNATURE

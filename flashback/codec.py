# flashback/codec.py
import logging
import zlib

logger = logging.getLogger(__name__)


def compress(text: str) -> bytes:
    """Compresses a message body. Returns b"" if the text cannot be encoded."""
    try:
        return zlib.compress(text.encode("utf-8"), zlib.Z_BEST_COMPRESSION)
    except (UnicodeEncodeError, zlib.error, AttributeError) as e:
        logger.warning(f"Could not compress message body: {e}")
        return b""


def decompress(data: bytes) -> str:
    """Inverse of compress(). Corrupt or empty input yields ""."""
    if not data:
        return ""
    try:
        return zlib.decompress(data).decode("utf-8")
    except (zlib.error, UnicodeDecodeError, TypeError) as e:
        logger.warning(f"Could not decompress message body: {e}")
        return ""

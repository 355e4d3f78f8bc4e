"""
preprocessor.py — turn an uploaded file into bytes the recognizers accept.

HEIC/HEIF photos (the iPhone default) are transcoded to JPEG with Pillow +
pillow-heif. Everything else is already a raster format the backends read
directly and passes through untouched.
"""
from __future__ import annotations

import asyncio
import io
import logging
from typing import Optional

from PIL import Image
from pillow_heif import register_heif_opener

from models import EncodedImage

logger = logging.getLogger(__name__)

register_heif_opener()

HEIF_SUFFIXES = (".heic", ".heif")
JPEG_QUALITY  = 90


class ConversionError(Exception):
    """The transcoder could not read one file. Only that file is affected."""

    def __init__(self, file_name: str, message: str) -> None:
        super().__init__(f"{file_name}: {message}")
        self.file_name = file_name
        self.message = message


def needs_transcoding(file_name: str) -> bool:
    return file_name.lower().endswith(HEIF_SUFFIXES)


def sniff_media_type(data: bytes) -> str:
    """Detect MIME type from magic bytes (defaults to JPEG)."""
    if data[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if data[:4] == b"GIF8":
        return "image/gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"


def _heic_to_jpeg(raw: bytes) -> bytes:
    img = Image.open(io.BytesIO(raw))
    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=JPEG_QUALITY)
    return buf.getvalue()


async def prepare(raw: bytes, file_name: str, media_type: Optional[str] = None) -> EncodedImage:
    """
    Return an EncodedImage for *raw*.

    Raises ConversionError when a HEIC/HEIF file cannot be transcoded; the
    caller records it as a per-image error row and carries on.
    """
    if needs_transcoding(file_name):
        try:
            jpeg = await asyncio.to_thread(_heic_to_jpeg, raw)
        except Exception as exc:
            logger.warning("HEIC conversion failed for %s: %s", file_name, exc)
            raise ConversionError(file_name, str(exc)) from exc
        logger.info("Converted %s to JPEG (%d → %d bytes)", file_name, len(raw), len(jpeg))
        return EncodedImage(file_name=file_name, data=jpeg, media_type="image/jpeg", converted=True)

    if not media_type or not media_type.startswith("image/"):
        media_type = sniff_media_type(raw)
    return EncodedImage(file_name=file_name, data=raw, media_type=media_type)

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

from PIL import Image, UnidentifiedImageError

from .errors import LogoUnavailableError

logger = logging.getLogger(__name__)


def load_logo(path: Union[str, Path]) -> Image.Image:
    """
    Read the watermark logo as an RGBA image.

    Raises:
        LogoUnavailableError: If the file is missing, unreadable or not an image
    """
    try:
        with Image.open(path) as image:
            image.load()
            return image.convert("RGBA")
    except (OSError, UnidentifiedImageError) as exc:
        logger.error(f"Watermark logo could not be loaded from {path}: {exc}")
        raise LogoUnavailableError(f"Cannot read watermark logo at {path}: {exc}") from exc


def fade(logo: Image.Image, opacity: float) -> Image.Image:
    """
    Return a copy of ``logo`` with every alpha value multiplied by ``opacity``.

    The logo's own transparency shape is kept; fully transparent pixels stay
    transparent.
    """
    faded = logo.convert("RGBA")
    alpha = faded.getchannel("A").point(lambda value: int(value * opacity))
    faded.putalpha(alpha)
    return faded

"""Decide which files in the stream are images worth uploading."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import NamedTuple, Optional

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp"})
# camera multi-picture files are plain JPEGs to everything downstream
JPEG_FORMATS = frozenset({"JPEG", "MPO"})


@dataclass(frozen=True)
class Candidate:
    path: Path
    mimetype: str


class ImageInfo(NamedTuple):
    width: int
    height: int
    size: int
    mimetype: str


def detect_mimetype(path: Path) -> Optional[str]:
    """Return the content type of ``path`` judged by its bytes, or None.

    The image is decoded in full, so a file that is still being written or
    is too large to decode safely counts as unidentified.
    """
    try:
        with Image.open(path) as img:
            img.load()
            if img.format in JPEG_FORMATS:
                return "image/jpeg"
            return Image.MIME.get(img.format)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError) as exc:
        logger.debug("Cannot identify %s: %s", path, exc)
        return None


def classify(path: Path) -> Optional[Candidate]:
    """Return a :class:`Candidate` for ``path`` or None if it should be skipped.

    A path is kept only if it is a regular file, has one of the
    :data:`IMAGE_EXTENSIONS` and its content decodes as an image.
    """
    path = Path(path)
    if not path.is_file():
        logger.debug("Skipping %s: not a regular file", path.name)
        return None
    if path.suffix.lower() not in IMAGE_EXTENSIONS:
        logger.debug("Skipping %s: unsupported extension", path.name)
        return None
    mimetype = detect_mimetype(path)
    if not mimetype or not mimetype.startswith("image/"):
        logger.debug("Skipping %s: content type %s", path.name, mimetype)
        return None
    return Candidate(path, mimetype)


def probe(path: Path, mimetype: str) -> ImageInfo:
    """Read pixel dimensions and byte size of the file about to be uploaded."""
    with Image.open(path) as img:
        width, height = img.size
    return ImageInfo(width, height, path.stat().st_size, mimetype)

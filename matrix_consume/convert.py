"""
Optional WebP conversion through the external ``cwebp`` tool.

Converted files are written to a private temporary directory that is removed
when the :func:`converted` context exits, whether the upload succeeded,
failed or the process is being torn down by a signal.
"""

import logging
import shutil
import subprocess
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Sequence

from .classify import Candidate, detect_mimetype
from .errors import ConversionFailed, ConverterUnavailable

logger = logging.getLogger(__name__)

CWEBP: str = "cwebp"
WEBP_MIMETYPE: str = "image/webp"


def needs_conversion(candidate: Candidate, enabled: bool) -> bool:
    return enabled and candidate.mimetype != WEBP_MIMETYPE


def convert_to_webp(source: Path, target: Path, extra_args: Sequence[str] = ()) -> None:
    """Run ``cwebp`` to write ``source`` as WebP into ``target``.

    Raises:
        ConverterUnavailable: ``cwebp`` is not installed.
        ConversionFailed: ``cwebp`` exited with an error or wrote nothing.
    """
    tool = shutil.which(CWEBP)
    if tool is None:
        raise ConverterUnavailable(CWEBP)
    cmd = [tool, *extra_args, "-o", str(target), "--", str(source)]
    logger.debug("Running %s", " ".join(cmd))
    result = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
    if result.returncode != 0:
        detail = result.stderr.strip().splitlines()[-1:] or ["no output"]
        raise ConversionFailed(
            f"{CWEBP} failed on {source.name} with status {result.returncode}: {detail[0]}"
        )
    if not target.is_file() or target.stat().st_size == 0:
        raise ConversionFailed(f"{CWEBP} produced no output for {source.name}")


@contextmanager
def converted(candidate: Candidate, extra_args: Sequence[str] = ()) -> Iterator[Candidate]:
    """Yield a WebP :class:`Candidate` made from ``candidate``.

    The temporary file lives only as long as the ``with`` block.
    """
    with tempfile.TemporaryDirectory(prefix="matrix-consume-") as tmpdir:
        target = Path(tmpdir) / (candidate.path.stem + ".webp")
        convert_to_webp(candidate.path, target, extra_args)
        mimetype = detect_mimetype(target)
        if mimetype is None:
            raise ConversionFailed(f"{CWEBP} output for {candidate.path.name} is not an image")
        logger.info(
            "Converted %s to WebP (%d -> %d bytes)",
            candidate.path.name,
            candidate.path.stat().st_size,
            target.stat().st_size,
        )
        yield Candidate(target, mimetype)

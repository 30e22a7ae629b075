"""
Upload pipeline and the sequential consume loop.

Each accepted file goes through convert (optional), probe, upload and send.
Any failure stops the whole run and leaves the file where it is; nothing is
retried.  Only after the room acknowledged the message is the original file
handed to :func:`cleanup.dispose`.
"""

import logging
import time
from contextlib import ExitStack
from typing import Callable, Optional

from . import cleanup
from .classify import Candidate, classify, probe
from .config import Config
from .convert import converted, needs_conversion
from .lock import DirectoryLock
from .matrix import MatrixClient, message_filename
from .monitor import iter_files

logger = logging.getLogger(__name__)


def upload_file(candidate: Candidate, config: Config, client: MatrixClient) -> str:
    """Post one image to the room and return the acknowledgement body.

    Raises:
        ConvertError: conversion was requested and failed.
        UploadFailed: the media upload returned no content URI.
        UploadRejected: the room message was not acknowledged.
    """
    with ExitStack() as stack:
        upload = candidate
        if needs_conversion(candidate, config.convert):
            upload = stack.enter_context(converted(candidate, config.cwebp_args))

        info = probe(upload.path, upload.mimetype)
        logger.debug(
            "Uploading %s: %dx%d, %d bytes, %s",
            upload.path.name, info.width, info.height, info.size, info.mimetype,
        )
        content_uri = client.upload(upload.path, upload.mimetype)
        filename = message_filename(upload.path.suffix)
        event = client.send_image(content_uri, info, filename)

    logger.info("Posted %s to %s as %s", candidate.path.name, config.room_id, filename)
    return event


def run(
    config: Config,
    client: Optional[MatrixClient] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """Consume the configured directory and return the number of files posted.

    Returns after the snapshot when watch mode is off, or right after the
    first posted file in one-shot mode.  In watch mode without one-shot it
    only returns by exception.
    """
    DirectoryLock(config.directory).acquire()
    if client is None:
        client = MatrixClient.from_config(config)

    posted = 0
    stream = iter_files(config.directory, watch=config.watch)
    try:
        for path in stream:
            candidate = classify(path)
            if candidate is None:
                continue
            upload_file(candidate, config, client)
            cleanup.dispose(candidate.path, config.move_to)
            posted += 1
            if config.one_shot:
                logger.info("One-shot mode, stopping after %s", candidate.path.name)
                break
            sleep(config.timeout)
    finally:
        stream.close()
    logger.info("Done, %d file(s) posted", posted)
    return posted

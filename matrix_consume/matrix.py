"""
Minimal Matrix client-server API calls used to post an image to a room.

Two requests are made per image: the raw bytes are uploaded to the media
repository, which answers with an ``mxc://`` content URI, and an
``m.image`` message referencing that URI is sent to the room.

The send step only counts as successful when the response body has the exact
shape ``{"event_id":"$..."}``.  A homeserver that pretty-prints or reorders
its JSON will therefore be reported as rejecting the message.

Dependencies: `requests`, installed with ``pip install requests``.
"""

import json
import logging
import random
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple, Union
from urllib.parse import quote

import requests

from .classify import ImageInfo
from .errors import ConfigInvalid, UploadFailed, UploadRejected

logger = logging.getLogger(__name__)

UPLOAD_PATH: str = "/_matrix/media/v3/upload"
SEND_PATH: str = "/_matrix/client/v3/rooms/{room_id}/send/m.room.message"

EVENT_PREFIX: str = '{"event_id":"$'
EVENT_SUFFIX: str = '"}'

DEFAULT_TIMEOUT: Tuple[float, float] = (10.0, 300.0)

Timeout = Union[float, Tuple[float, float]]


def is_event_accepted(body: str) -> bool:
    """True if ``body`` is literally ``{"event_id":"$<id>"}``."""
    body = body.rstrip("\n")
    return (
        len(body) > len(EVENT_PREFIX) + len(EVENT_SUFFIX)
        and body.startswith(EVENT_PREFIX)
        and body.endswith(EVENT_SUFFIX)
    )


def message_filename(extension: str, rng: Optional[random.Random] = None) -> str:
    """Cosmetic file name shown in the room, e.g. ``1849204711.png``."""
    number = (rng or random).randint(0, 2**31 - 1)
    return f"{number}{extension.lower()}"


def image_message(content_uri: str, info: ImageInfo, filename: str) -> Dict[str, Any]:
    """Build ``m.image`` content; the upload doubles as its own thumbnail."""
    image_info = {
        "mimetype": info.mimetype,
        "size": info.size,
        "w": info.width,
        "h": info.height,
    }
    return {
        "msgtype": "m.image",
        "body": filename,
        "url": content_uri,
        "info": dict(image_info, thumbnail_url=content_uri, thumbnail_info=dict(image_info)),
    }


def _seconds(option: str, value: str) -> float:
    try:
        return float(value)
    except ValueError:
        raise ConfigInvalid("curl_args", f"{option} expects seconds, got {value!r}") from None


def session_options(args: Sequence[str]) -> Tuple[Dict[str, Any], Optional[Timeout]]:
    """Translate curl-style pass-through arguments into session settings.

    Returns a dict of ``verify``, ``proxies`` and ``headers`` entries plus a
    request timeout, or None when no timeout option was given.  Options with
    no requests equivalent are ignored.

    Raises:
        ConfigInvalid: a timeout option has a non-numeric value.
    """
    options: Dict[str, Any] = {}
    connect: Optional[float] = None
    total: Optional[float] = None
    items = list(args)
    i = 0
    while i < len(items):
        arg = items[i]
        value = items[i + 1] if i + 1 < len(items) else None
        if arg in ("-k", "--insecure"):
            options["verify"] = False
        elif arg == "--cacert" and value is not None:
            options["verify"] = value
            i += 1
        elif arg in ("-x", "--proxy") and value is not None:
            options["proxies"] = {"http": value, "https": value}
            i += 1
        elif arg in ("-H", "--header") and value is not None:
            name, _, header_value = value.partition(":")
            options.setdefault("headers", {})[name.strip()] = header_value.strip()
            i += 1
        elif arg in ("-m", "--max-time") and value is not None:
            total = _seconds(arg, value)
            i += 1
        elif arg == "--connect-timeout" and value is not None:
            connect = _seconds(arg, value)
            i += 1
        else:
            logger.debug("Ignoring unsupported HTTP option: %s", arg)
        i += 1

    timeout: Optional[Timeout] = None
    if connect is not None or total is not None:
        timeout = (
            connect if connect is not None else DEFAULT_TIMEOUT[0],
            total if total is not None else DEFAULT_TIMEOUT[1],
        )
    return options, timeout


class MatrixClient:
    """Posts images to one room on one homeserver."""

    def __init__(
        self,
        server: str,
        token: str,
        room_id: str,
        http_args: Sequence[str] = (),
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = f"https://{server}"
        self.room_id = room_id
        self.session = session or requests.Session()
        self.session.headers["Authorization"] = f"Bearer {token}"
        options, timeout = session_options(http_args)
        self.session.headers.update(options.pop("headers", {}))
        for name, value in options.items():
            setattr(self.session, name, value)
        self.timeout: Timeout = timeout or DEFAULT_TIMEOUT

    @classmethod
    def from_config(cls, config) -> "MatrixClient":
        return cls(config.server, config.token, config.room_id, config.http_args)

    def upload(self, path: Path, mimetype: str) -> str:
        """Upload the bytes of ``path`` and return the ``mxc://`` content URI.

        Raises:
            UploadFailed: transport error or no content URI in the response.
        """
        url = self.base_url + UPLOAD_PATH
        headers = {"Accept": "application/json", "Content-Type": mimetype}
        try:
            with open(path, "rb") as fh:
                response = self.session.post(url, data=fh, headers=headers, timeout=self.timeout)
        except (requests.RequestException, OSError) as exc:
            raise UploadFailed(f"Upload of {path.name} failed: {exc}") from exc
        logger.debug("Upload response %s: %s", response.status_code, response.text)
        try:
            content_uri = response.json().get("content_uri")
        except (ValueError, AttributeError):
            content_uri = None
        if not content_uri:
            raise UploadFailed(
                f"Upload of {path.name} returned no content URI "
                f"(HTTP {response.status_code}): {response.text.strip()[:200]}"
            )
        return content_uri

    def send_image(self, content_uri: str, info: ImageInfo, filename: str) -> str:
        """Send an ``m.image`` message and return the raw response body.

        Raises:
            UploadRejected: transport error or a response that is not an
                event id acknowledgement.
        """
        url = self.base_url + SEND_PATH.format(room_id=quote(self.room_id, safe=""))
        body = json.dumps(image_message(content_uri, info, filename))
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        try:
            response = self.session.post(url, data=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise UploadRejected(f"Sending {filename} to {self.room_id} failed: {exc}") from exc
        logger.debug("Send response %s: %s", response.status_code, response.text)
        if not is_event_accepted(response.text):
            raise UploadRejected(
                f"Room {self.room_id} did not accept {filename} "
                f"(HTTP {response.status_code}): {response.text.strip()[:200]}"
            )
        return response.text.rstrip("\n")

"""Shared fixtures for matrix-consume tests."""

import json
from pathlib import Path
from typing import List, Optional

import pytest
from PIL import Image

from matrix_consume.config import Config


def make_image(path: Path, fmt: str = "PNG", size=(4, 3)) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, (200, 40, 40)).save(path, format=fmt)
    return path


class FakeResponse:
    def __init__(self, text: str, status_code: int = 200) -> None:
        self.text = text
        self.status_code = status_code

    def json(self):
        return json.loads(self.text)


class FakeSession:
    """Stands in for requests.Session, answering uploads and sends in order."""

    def __init__(
        self,
        upload_body: str = '{"content_uri":"mxc://example.org/abc"}',
        send_body: str = '{"event_id":"$abc"}',
    ) -> None:
        self.headers = {}
        self.upload_body = upload_body
        self.send_body = send_body
        self.calls: List[dict] = []

    def post(self, url, data=None, headers=None, timeout=None):
        if hasattr(data, "read"):
            data = data.read()
        self.calls.append({"url": url, "data": data, "headers": headers, "timeout": timeout})
        if "/media/" in url:
            return FakeResponse(self.upload_body)
        return FakeResponse(self.send_body)


@pytest.fixture
def source_dir(tmp_path) -> Path:
    directory = tmp_path / "outbox"
    directory.mkdir()
    return directory


@pytest.fixture
def make_config(source_dir):
    def factory(move_to: Optional[Path] = None, **overrides) -> Config:
        values = dict(
            room_id="!room:example.org",
            server="matrix.example.org",
            token="syt_token",
            directory=source_dir.resolve(),
            timeout=0.0,
            move_to=move_to,
        )
        values.update(overrides)
        return Config(**values)

    return factory

"""Tests for systemd unit generation."""

import subprocess
import sys
from unittest import mock

import pytest

from matrix_consume import service
from matrix_consume.errors import ServiceError, SupervisorToolMissing


@pytest.fixture
def xdg(tmp_path, monkeypatch):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    return tmp_path / "xdg" / "systemd" / "user"


@pytest.fixture
def systemctl(monkeypatch):
    monkeypatch.setattr(service.shutil, "which", lambda name: "/usr/bin/systemctl")
    ok = subprocess.CompletedProcess([], 0, "", "")
    with mock.patch.object(service.subprocess, "run", return_value=ok) as run:
        yield run


def commands(run):
    return [call[0][0][2:] for call in run.call_args_list]


def test_unit_names(tmp_path):
    assert service.unit_names(tmp_path / "photos") == (
        "matrix-consume-photos.service",
        "matrix-consume-photos.timer",
    )


def test_install_writes_units_and_enables_timer(tmp_path, xdg, systemctl):
    config = tmp_path / "photos"
    config.write_text("")
    service_path, timer_path = service.install_service(config, 300)

    assert service_path == xdg / "matrix-consume-photos.service"
    unit = service_path.read_text()
    assert f"ExecStart={sys.executable} -m matrix_consume --config {config.resolve()} --watch" in unit
    assert "Restart=on-failure" in unit
    timer = timer_path.read_text()
    assert "OnUnitInactiveSec=300s" in timer
    assert "Unit=matrix-consume-photos.service" in timer
    assert commands(systemctl) == [
        ["daemon-reload"],
        ["enable", "--now", "matrix-consume-photos.timer"],
    ]


def test_remove_deletes_units(tmp_path, xdg, systemctl):
    config = tmp_path / "photos"
    service.install_service(config, 60)
    systemctl.reset_mock()
    service.remove_service(config)
    assert not (xdg / "matrix-consume-photos.service").exists()
    assert not (xdg / "matrix-consume-photos.timer").exists()
    assert commands(systemctl) == [
        ["disable", "--now", "matrix-consume-photos.timer", "matrix-consume-photos.service"],
        ["daemon-reload"],
    ]


def test_remove_without_units_is_noop(tmp_path, xdg, systemctl):
    service.remove_service(tmp_path / "photos")
    systemctl.assert_not_called()


def test_missing_systemctl(tmp_path, xdg, monkeypatch):
    monkeypatch.setattr(service.shutil, "which", lambda name: None)
    with pytest.raises(SupervisorToolMissing):
        service.install_service(tmp_path / "photos", 60)
    assert not xdg.exists()


def test_failing_systemctl_raises(tmp_path, xdg, monkeypatch):
    monkeypatch.setattr(service.shutil, "which", lambda name: "/usr/bin/systemctl")
    failed = subprocess.CompletedProcess([], 1, "", "Failed to connect to bus")
    with mock.patch.object(service.subprocess, "run", return_value=failed):
        with pytest.raises(ServiceError, match="Failed to connect to bus"):
            service.install_service(tmp_path / "photos", 60)

"""
systemd user units for running matrix-consume unattended.

For a config file ``~/.config/matrix-consume/photos`` this writes
``matrix-consume-photos.service``, which consumes the directory in watch
mode, and ``matrix-consume-photos.timer``, which starts the service again
whenever it has been inactive for the given interval.
"""

import logging
import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import List, Tuple

from .errors import ServiceError, SupervisorToolMissing

logger = logging.getLogger(__name__)

SYSTEMCTL: str = "systemctl"

SERVICE_TEMPLATE = """\
[Unit]
Description=Post images from a directory to Matrix ({profile})
After=network-online.target
Wants=network-online.target

[Service]
Type=simple
ExecStart={python} -m matrix_consume --config {config} --watch
Restart=on-failure
RestartSec=30

[Install]
WantedBy=default.target
"""

TIMER_TEMPLATE = """\
[Unit]
Description=Restart matrix-consume ({profile}) when idle

[Timer]
OnBootSec=1min
OnUnitInactiveSec={interval}s
Unit={service}

[Install]
WantedBy=timers.target
"""


def unit_dir() -> Path:
    config_home = os.getenv("XDG_CONFIG_HOME") or os.path.join("~", ".config")
    return Path(config_home).expanduser() / "systemd" / "user"


def unit_names(config_path: Path) -> Tuple[str, str]:
    base = f"matrix-consume-{Path(config_path).stem}"
    return f"{base}.service", f"{base}.timer"


def _systemctl(*args: str) -> None:
    tool = shutil.which(SYSTEMCTL)
    if tool is None:
        raise SupervisorToolMissing(SYSTEMCTL)
    cmd: List[str] = [tool, "--user", *args]
    logger.debug("Running %s", " ".join(cmd))
    result = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True)
    if result.returncode != 0:
        raise ServiceError(
            f"{' '.join(cmd[1:])} failed with status {result.returncode}: "
            f"{result.stderr.strip()}"
        )


def install_service(config_path: Path, interval: float) -> Tuple[Path, Path]:
    """Write and enable the unit/timer pair for ``config_path``.

    Returns the paths of the written service and timer files.
    """
    if shutil.which(SYSTEMCTL) is None:
        raise SupervisorToolMissing(SYSTEMCTL)
    config_path = Path(config_path).expanduser().resolve()
    service, timer = unit_names(config_path)
    profile = config_path.stem

    directory = unit_dir()
    directory.mkdir(parents=True, exist_ok=True)
    service_path = directory / service
    timer_path = directory / timer
    service_path.write_text(
        SERVICE_TEMPLATE.format(profile=profile, python=sys.executable, config=config_path),
        encoding="utf-8",
    )
    timer_path.write_text(
        TIMER_TEMPLATE.format(profile=profile, interval=max(1, int(interval)), service=service),
        encoding="utf-8",
    )
    logger.info("Wrote %s and %s", service_path, timer_path)

    _systemctl("daemon-reload")
    _systemctl("enable", "--now", timer)
    logger.info("Enabled %s", timer)
    return service_path, timer_path


def remove_service(config_path: Path) -> None:
    """Disable the timer for ``config_path`` and delete both unit files."""
    if shutil.which(SYSTEMCTL) is None:
        raise SupervisorToolMissing(SYSTEMCTL)
    service, timer = unit_names(Path(config_path).expanduser())
    paths = [unit_dir() / name for name in (service, timer)]
    if not any(path.exists() for path in paths):
        logger.info("No units installed for %s", config_path)
        return
    _systemctl("disable", "--now", timer, service)
    for path in paths:
        if path.exists():
            path.unlink()
            logger.info("Removed %s", path)
    _systemctl("daemon-reload")

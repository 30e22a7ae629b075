"""Tests for the per-directory PID lock."""

import os
import subprocess
import sys

import pytest

from matrix_consume.errors import DirectoryBusy
from matrix_consume.lock import LOCK_NAME, DirectoryLock, pid_alive


@pytest.fixture
def dead_pid():
    proc = subprocess.Popen([sys.executable, "-c", "pass"])
    proc.wait()
    return proc.pid


def test_pid_alive():
    assert pid_alive(os.getpid())
    assert not pid_alive(0)
    assert not pid_alive(-5)


def test_unlocked_directory_is_free(source_dir):
    lock = DirectoryLock(source_dir)
    assert lock.owner() is None
    assert not lock.is_occupied()


def test_acquire_writes_own_pid(source_dir):
    lock = DirectoryLock(source_dir)
    lock.acquire()
    assert (source_dir / LOCK_NAME).read_text().strip() == str(os.getpid())
    assert lock.owner() == os.getpid()
    assert lock.is_occupied()


def test_second_acquire_with_live_owner_is_busy(source_dir):
    # the parent of the test runner is alive and is not us
    owner = os.getppid()
    (source_dir / LOCK_NAME).write_text(f"{owner}\n")
    lock = DirectoryLock(source_dir)
    assert lock.is_occupied()
    with pytest.raises(DirectoryBusy) as excinfo:
        lock.acquire()
    assert excinfo.value.pid == owner
    assert (source_dir / LOCK_NAME).read_text().strip() == str(owner)


def test_stale_lock_is_reclaimed(source_dir, dead_pid):
    (source_dir / LOCK_NAME).write_text(str(dead_pid))
    lock = DirectoryLock(source_dir)
    assert not lock.is_occupied()
    lock.acquire()
    assert lock.owner() == os.getpid()


def test_garbage_lock_is_reclaimed(source_dir):
    (source_dir / LOCK_NAME).write_text("not a pid")
    lock = DirectoryLock(source_dir)
    assert lock.owner() is None
    lock.acquire()
    assert lock.owner() == os.getpid()


def test_reacquire_by_same_process(source_dir):
    lock = DirectoryLock(source_dir)
    lock.acquire()
    DirectoryLock(source_dir).acquire()
    assert lock.owner() == os.getpid()

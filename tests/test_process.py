import os
import subprocess
import sys

import psutil
import pytest

from hostdiag.net import process as process_module
from hostdiag.net.process import resolve_process_name


class FakeProcess:
    def __init__(self, pid, name="svchost.exe", running=True, error=None):
        self.pid = pid
        self._name = name
        self._running = running
        self._error = error

    def is_running(self):
        return self._running

    def name(self):
        if self._error:
            raise self._error
        return self._name


def patch_process(monkeypatch, factory):
    monkeypatch.setattr(process_module.psutil, "Process", factory)


@pytest.mark.parametrize("pid, expected", [
    (0, "System Idle Process"),
    (4, "System"),
    (-1, "Invalid PID"),
    (-4000, "Invalid PID"),
])
def test_reserved_pids_make_no_lookup(monkeypatch, pid, expected):
    def fail(pid):
        raise AssertionError("process lookup should not happen")

    patch_process(monkeypatch, fail)
    assert resolve_process_name(pid) == expected


def test_resolves_name(monkeypatch):
    patch_process(monkeypatch, lambda pid: FakeProcess(pid, "nginx"))
    assert resolve_process_name(1234) == "nginx"


def test_missing_process(monkeypatch):
    def missing(pid):
        raise psutil.NoSuchProcess(pid)

    patch_process(monkeypatch, missing)
    assert resolve_process_name(4321) == "Process Exited"


def test_process_exits_between_open_and_name(monkeypatch):
    patch_process(monkeypatch, lambda pid: FakeProcess(pid, error=psutil.NoSuchProcess(pid)))
    assert resolve_process_name(4321) == "Process Exited"


def test_zombie_counts_as_exited(monkeypatch):
    patch_process(monkeypatch, lambda pid: FakeProcess(pid, error=psutil.ZombieProcess(pid)))
    assert resolve_process_name(4321) == "Process Exited"


def test_not_running(monkeypatch):
    patch_process(monkeypatch, lambda pid: FakeProcess(pid, running=False))
    assert resolve_process_name(4321) == "Process Exited"


def test_access_denied(monkeypatch, caplog):
    patch_process(monkeypatch, lambda pid: FakeProcess(pid, error=psutil.AccessDenied(pid)))

    with caplog.at_level("WARNING", logger="hostdiag.net.process"):
        assert resolve_process_name(800) == "Access Denied"

    assert "PID 800" in caplog.text


def test_other_failure_is_lookup_error(monkeypatch, caplog):
    patch_process(monkeypatch, lambda pid: FakeProcess(pid, error=RuntimeError("boom")))

    with caplog.at_level("ERROR", logger="hostdiag.net.process"):
        assert resolve_process_name(801) == "Lookup Error"

    assert "boom" in caplog.text


def test_current_process_resolves():
    name = resolve_process_name(os.getpid())
    assert name == psutil.Process().name()


def test_already_exited_process():
    child = subprocess.Popen([sys.executable, "-c", "pass"])
    child.wait()
    assert resolve_process_name(child.pid) == "Process Exited"

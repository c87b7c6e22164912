import sys

import pytest

from hostdiag.net import privilege


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX euid check")
@pytest.mark.parametrize("euid, expected", [(0, True), (1000, False)])
def test_is_elevated_posix(monkeypatch, euid, expected):
    monkeypatch.setattr(privilege.os, "geteuid", lambda: euid)
    assert privilege.is_elevated() is expected


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX euid check")
def test_is_elevated_when_check_fails(monkeypatch):
    def broken():
        raise OSError("no euid")

    monkeypatch.setattr(privilege.os, "geteuid", broken)
    assert privilege.is_elevated() is False

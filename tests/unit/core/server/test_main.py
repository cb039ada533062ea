"""Tests for the server entry point's bind guard."""

from __future__ import annotations

import pytest

from hsiflux.core.server import main


@pytest.mark.parametrize("host", ["127.0.0.1", "::1", "localhost"])
def test_loopback_hosts(host):
    assert main._is_loopback_host(host)


@pytest.mark.parametrize("host", ["0.0.0.0", "192.168.1.10", "example.com"])
def test_non_loopback_hosts(host):
    assert not main._is_loopback_host(host)


def test_run_refuses_public_bind(monkeypatch):
    monkeypatch.setenv("FLUX_HOST", "0.0.0.0")
    monkeypatch.setenv("FLUX_ALLOW_INSECURE_BIND", "false")
    with pytest.raises(RuntimeError, match="non-loopback"):
        main.run()

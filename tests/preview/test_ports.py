"""Tests for sitegen.preview.ports."""

from __future__ import annotations

import asyncio
import errno
import socket

import pytest

from sitegen.preview import ports
from sitegen.preview.ports import is_port_bound, is_port_listening, wait_for_port


@pytest.fixture
def listener():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen()
    try:
        yield sock.getsockname()[1]
    finally:
        sock.close()


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_bound_port_is_detected(listener: int) -> None:
    assert is_port_bound(listener, "127.0.0.1") is True
    assert is_port_listening("127.0.0.1", listener) is True


def test_free_port_is_reported_free() -> None:
    port = _free_port()

    assert is_port_bound(port, "127.0.0.1") is False
    assert is_port_listening("127.0.0.1", port) is False


@pytest.fixture
def ipv6_listener():
    if not socket.has_ipv6:
        pytest.skip("IPv6 unavailable")
    sock = socket.socket(socket.AF_INET6, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 1)
        sock.bind(("::1", 0))
    except OSError:
        sock.close()
        pytest.skip("IPv6 loopback unavailable")
    sock.listen()
    try:
        yield sock.getsockname()[1]
    finally:
        sock.close()


def test_ipv6_only_listener_is_detected(ipv6_listener: int) -> None:
    assert is_port_bound(ipv6_listener) is True
    assert is_port_bound(ipv6_listener, "127.0.0.1") is True


def test_resource_exhaustion_is_treated_as_bound(monkeypatch) -> None:
    def exhausted(*_args, **_kwargs):
        raise OSError(errno.EMFILE, "Too many open files")

    monkeypatch.setattr(ports.socket, "socket", exhausted)

    assert is_port_bound(5173) is True


def test_wait_for_port_returns_true_once_listening(listener: int) -> None:
    assert asyncio.run(wait_for_port("127.0.0.1", listener, timeout=1.0)) is True


def test_wait_for_port_times_out() -> None:
    port = _free_port()

    assert asyncio.run(wait_for_port("127.0.0.1", port, timeout=0.3, interval=0.05)) is False

"""TCP port probes used to avoid double-starting the preview server."""

from __future__ import annotations

import asyncio
import errno
import socket

from ..logging import get_logger

logger = get_logger("ports")

_IN_USE = frozenset({errno.EADDRINUSE, errno.EACCES})
_EXHAUSTED = frozenset({errno.EMFILE, errno.ENFILE, errno.ENOBUFS, errno.ENOMEM})
_NO_IPV6 = frozenset({errno.EAFNOSUPPORT, errno.EADDRNOTAVAIL, errno.EPROTONOSUPPORT})
_IPV6_COUNTERPARTS = {"0.0.0.0": "::", "": "::", "127.0.0.1": "::1", "localhost": "::1"}


def is_port_bound(port: int, host: str = "0.0.0.0") -> bool:
    """Return True when ``port`` cannot be bound on ``host``.

    The probe binds a throwaway socket and releases it immediately. Wildcard
    and loopback hosts are probed on IPv6 too, so a listener that only holds
    ``::`` or ``::1`` is still seen. Resource exhaustion, or any other
    unexpected socket error, is logged and reported as bound so callers never
    start a second server on an uncertain port.
    """
    if _probe(socket.AF_INET, host, port):
        return True
    ipv6_host = _IPV6_COUNTERPARTS.get(host)
    if ipv6_host is None or not socket.has_ipv6:
        return False
    return _probe(socket.AF_INET6, ipv6_host, port)


def _probe(family: int, host: str, port: int) -> bool:
    try:
        sock = socket.socket(family, socket.SOCK_STREAM)
    except OSError as exc:
        if family == socket.AF_INET6 and exc.errno in _NO_IPV6:
            return False
        logger.error("Unable to create probe socket for port %d: %s", port, exc)
        return True
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        if family == socket.AF_INET6:
            sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 1)
        sock.bind((host, int(port)))
    except OSError as exc:
        if exc.errno in _IN_USE:
            return True
        if family == socket.AF_INET6 and exc.errno in _NO_IPV6:
            return False
        if exc.errno in _EXHAUSTED:
            logger.error("Resource exhaustion while probing port %d: %s", port, exc)
        else:
            logger.error("Unexpected error while probing port %d: %s", port, exc)
        return True
    finally:
        sock.close()
    return False


def is_port_listening(host: str, port: int, timeout: float = 0.35) -> bool:
    """Return True when something accepts TCP connections on ``host:port``."""
    try:
        with socket.create_connection((host, int(port)), timeout=timeout):
            return True
    except OSError:
        return False


async def wait_for_port(
    host: str,
    port: int,
    timeout: float,
    *,
    interval: float = 0.25,
) -> bool:
    """Poll until ``host:port`` accepts connections or ``timeout`` elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if await asyncio.to_thread(is_port_listening, host, port):
            return True
        await asyncio.sleep(interval)
    return await asyncio.to_thread(is_port_listening, host, port)


__all__ = ["is_port_bound", "is_port_listening", "wait_for_port"]

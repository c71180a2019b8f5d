"""
Network utilities for ch_http_core.

This module provides utility functions for socket configuration,
SSL context setup and Host header formatting.
"""

import socket
import ssl
from typing import Any, Optional


def configure_socket(sock: Any) -> None:
    """
    Apply keep-alive and latency options to a connected socket.

    Args:
        sock: A socket, or the socket-like object asyncio exposes
    """
    if not hasattr(sock, "setsockopt"):
        return

    sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
    enable_keep_alive(sock)


def enable_keep_alive(sock: Any, idle: int = 1) -> None:
    """
    Force TCP keep-alive on a socket.

    Args:
        sock: A socket, or the socket-like object asyncio exposes
        idle: Seconds of idleness before the first probe
    """
    if not hasattr(sock, "setsockopt"):
        return

    sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)

    # Platform-specific keep-alive settings
    if hasattr(socket, 'TCP_KEEPIDLE'):
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_KEEPIDLE, idle)
    if hasattr(socket, 'TCP_KEEPINTVL'):
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_KEEPINTVL, 10)
    if hasattr(socket, 'TCP_KEEPCNT'):
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_KEEPCNT, 6)


def create_ssl_context(
    ca_file: Optional[str] = None,
    verify: bool = True,
) -> ssl.SSLContext:
    """
    Create an SSL context for https connections.

    Args:
        ca_file: Optional CA bundle to trust
        verify: Whether to verify the server certificate and hostname

    Returns:
        Configured SSL context
    """
    context = ssl.create_default_context(cafile=ca_file)

    if not verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

    # Disable legacy protocols
    context.minimum_version = ssl.TLSVersion.TLSv1_2

    return context


def format_host_header(host: str, port: int, scheme: str) -> str:
    """
    Format host header for HTTP requests.

    Args:
        host: Hostname
        port: Port number
        scheme: URL scheme

    Returns:
        Formatted host header string
    """
    if ":" in host and not host.startswith("["):
        host = f"[{host}]"
    if (scheme == "https" and port == 443) or (scheme == "http" and port == 80):
        return host
    return f"{host}:{port}"


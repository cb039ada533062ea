"""HSI Flux server entry point: ``python -m hsiflux.core.server.main``."""

from __future__ import annotations

import logging
from ipaddress import ip_address

from hsiflux.core.config.settings import get_settings
from hsiflux.core.server.app import create_app


def _is_loopback_host(host: str) -> bool:
    if host in {"localhost"}:
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def run() -> None:
    """Start the HSI Flux MCP server with Streamable HTTP transport."""
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.flux_log_level.upper(), logging.INFO))

    logger = logging.getLogger(__name__)
    if not settings.flux_allow_insecure_bind and not _is_loopback_host(settings.flux_host):
        raise RuntimeError(
            "Refusing to bind HSI Flux to a non-loopback host without an auth layer. "
            "Set FLUX_ALLOW_INSECURE_BIND=true to override (unsafe)."
        )
    logger.info("Starting HSI Flux server on %s:%d", settings.flux_host, settings.flux_port)

    mcp = create_app()
    mcp.run(
        transport="streamable-http",
        host=settings.flux_host,
        port=settings.flux_port,
    )


if __name__ == "__main__":
    run()

"""
Webhook server command.

Loads the policy (fatal on error), starts the policy reloader, and serves the
admission API (TLS) and the ops API (health + metrics) until shutdown.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog
import uvicorn

from limits_admission.admission.engine import DecisionEngine
from limits_admission.api.main import create_app, create_ops_app
from limits_admission.config.settings import Settings, split_address
from limits_admission.core.errors import ConfigurationError, ExitCode
from limits_admission.logging import configure_logging
from limits_admission.policy.loader import PolicyLoader
from limits_admission.policy.reloader import PolicyReloader
from limits_admission.policy.store import PolicyStore

logger = structlog.get_logger()


def _tls_files(settings: Settings) -> tuple[str | None, str | None]:
    cert, key = settings.tls_cert_file, settings.tls_key_file
    if bool(cert) != bool(key):
        raise ConfigurationError("both --tls-cert-file and --tls-private-key-file are required for TLS")
    for path in (cert, key):
        if path and not Path(path).is_file():
            raise ConfigurationError("unable to load certificates", details={"path": path})
    return cert, key


def build_servers(
    settings: Settings, engine: DecisionEngine, store: PolicyStore
) -> tuple[uvicorn.Server, uvicorn.Server]:
    cert, key = _tls_files(settings)
    host, port = split_address(settings.addr)
    ops_host, ops_port = split_address(settings.ops_addr)

    if cert is None:
        logger.warning("tls_disabled", addr=settings.addr)

    admission_server = uvicorn.Server(
        uvicorn.Config(
            create_app(engine, store),
            host=host,
            port=port,
            ssl_certfile=cert,
            ssl_keyfile=key,
            log_config=None,
            access_log=False,
        )
    )
    ops_server = uvicorn.Server(
        uvicorn.Config(
            create_ops_app(engine, store),
            host=ops_host,
            port=ops_port,
            log_config=None,
            access_log=False,
        )
    )
    return admission_server, ops_server


async def run(settings: Settings) -> None:
    loader = PolicyLoader(settings.config_file)
    store = PolicyStore(loader.load())
    engine = DecisionEngine(store)
    reloader = PolicyReloader(store, loader, refresh_interval=settings.refresh_interval)

    admission_server, ops_server = build_servers(settings, engine, store)

    logger.info("app_started", addr=settings.addr, ops_addr=settings.ops_addr, config_file=settings.config_file)
    reloader.start()
    ops_task = asyncio.create_task(ops_server.serve())
    try:
        await admission_server.serve()
    finally:
        ops_server.should_exit = True
        await asyncio.gather(ops_task, return_exceptions=True)
        await reloader.close()


def serve_command(settings: Settings) -> int:
    """Run the webhook until interrupted; returns an exit code."""
    configure_logging(settings.log_level, settings.log_format)
    asyncio.run(run(settings))
    return ExitCode.SUCCESS

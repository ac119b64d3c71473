"""
Proxy factory for pgproxy.

This module runs a full synchronization (compile, detect, reconcile, build)
and tracks the single proxy a factory may have active at a time.
"""

from typing import Any, Mapping, Optional

import asyncpg
from asyncpg.pool import Pool

from pgproxy.base import ConfigurationError, RemoteClient
from pgproxy.client import AsyncpgClient
from pgproxy.compiler import ProcedureCompiler, SourceLike
from pgproxy.config import ProxyConfig
from pgproxy.detector import ChangeDetector
from pgproxy.proxy import ProxyHandle, build_proxy
from pgproxy.reverse import ReverseChannel
from pgproxy.synchronizer import Synchronizer
from pgproxy.utils.logging import get_logger, logging_context

logger = get_logger(__name__)


def _as_client(client: Any) -> Optional[RemoteClient]:
    if client is None or isinstance(client, RemoteClient):
        return client
    if isinstance(client, (asyncpg.Connection, Pool)):
        return AsyncpgClient(client)
    raise ConfigurationError(f"Unsupported client type: {type(client).__name__}")


class PGProxy:
    """Creates proxies and enforces a single active proxy.

    The limit is per factory: independent PGProxy instances each hold their
    own slot. The module-level create and destroy share default_factory.
    """

    def __init__(self):
        self.active: Optional[ProxyHandle] = None
        self.creating = False

    async def create(
        self,
        functions: Mapping[str, SourceLike],
        client: Any = None,
        **options
    ) -> ProxyHandle:
        """Synchronize functions with the server and return a proxy.

        Each function is created as a PL/v8 procedure named
        ``<schema>.pgproxy_<name>``; the returned proxy executes them.

        Args:
            functions: Mapping of function name to JavaScript source
            client: A RemoteClient, or an asyncpg connection or pool
            **options: schema, create_new, update_changed, purge_orphaned,
                expose, log_calls, log_results

        Returns:
            The proxy handle

        Raises:
            ConfigurationError: If no client is given, an option is invalid,
                or a proxy is already active
        """
        if self.active is not None or self.creating:
            raise ConfigurationError(
                "A proxy is already active; destroy it before creating another"
            )

        config = ProxyConfig.from_options(client=_as_client(client), **options)

        self.creating = True
        try:
            with logging_context(schema=config.schema):
                compiler = ProcedureCompiler(config.schema, (config.expose or {}).keys())
                specs = compiler.compile_all(functions)

                changes = await ChangeDetector(config.client, config.schema).detect(specs)
                result = await Synchronizer(config.client, config).reconcile(changes)

                proxy = build_proxy(result, config.client, config, changes=changes, on_destroy=self._release)

                if config.expose:
                    channel = ReverseChannel(config.client, config.expose)
                    await channel.start()
                    proxy.channel = channel

                self.active = proxy
                logger.info(
                    f"Created proxy with {len(result.enabled)} enabled and "
                    f"{len(result.disabled)} disabled functions"
                )
                return proxy
        finally:
            self.creating = False

    async def destroy(self) -> None:
        """Destroy the active proxy, if any."""
        if self.active is not None:
            await self.active.destroy()

    async def _release(self, proxy: ProxyHandle) -> None:
        if self.active is proxy:
            self.active = None


default_factory = PGProxy()


async def create(functions: Mapping[str, SourceLike], client: Any = None, **options) -> ProxyHandle:
    """Create a proxy with the default factory."""
    return await default_factory.create(functions, client=client, **options)


async def destroy() -> None:
    """Destroy the proxy held by the default factory."""
    await default_factory.destroy()

"""
Proxy builder.

This module wires every reconciled function to a callable: enabled functions
invoke their remote procedure, disabled functions fail on every call.
"""

import time
from typing import Any, Awaitable, Callable, Dict, Iterator, Optional, Tuple

from pgproxy.base import DisabledFunctionError, ProxyClosedError, RemoteClient
from pgproxy.codec import JsonValue, decode_result, encode_arguments
from pgproxy.compiler import qualified_name
from pgproxy.config import ProxyConfig
from pgproxy.models import ChangeSet, ReconciliationResult
from pgproxy.utils.logging import get_logger

logger = get_logger(__name__)


class ProxyHandle:
    """Callable surface over the synchronized procedures.

    Functions are reached as attributes (``proxy.add(2, 3)``) or items
    (``proxy["add"](2, 3)``). Enabled functions are coroutine functions;
    disabled functions raise DisabledFunctionError as soon as they are called.
    """

    def __init__(
        self,
        client: RemoteClient,
        config: ProxyConfig,
        result: ReconciliationResult,
        changes: Optional[ChangeSet] = None,
        on_destroy: Optional[Callable[["ProxyHandle"], Awaitable[None]]] = None
    ):
        """Initialize the proxy handle.

        Args:
            client: The remote client
            config: The proxy configuration
            result: The reconciliation result to expose
            changes: The change set the result was derived from
            on_destroy: Coroutine function awaited once when the handle is destroyed
        """
        self._client = client
        self._config = config
        self._result = result
        self._changes = changes
        self._on_destroy = on_destroy
        self._closed = False
        self._functions: Dict[str, Callable[..., Any]] = {}
        self.channel = None
        self.metrics = {
            "created_at": time.time(),
            "last_activity": time.time(),
            "total_calls": 0,
            "successful_calls": 0,
            "failed_calls": 0,
            "refused_calls": 0,
            "total_execution_time": 0.0,
            "avg_execution_time": 0.0,
            "max_execution_time": 0.0,
            "min_execution_time": float('inf')
        }

        for fn in result.enabled:
            self._functions[fn.name] = self._enabled(fn.name)
        for fn in result.disabled:
            self._functions[fn.name] = self._disabled(fn.name)

    def _enabled(self, name: str) -> Callable[..., Awaitable[Any]]:
        procedure = qualified_name(self._config.schema, name)
        query = f"select {procedure}($1::json)"

        async def call(*args: JsonValue) -> Any:
            self._check_open(name)
            self.metrics["total_calls"] += 1
            self.metrics["last_activity"] = time.time()

            payload = encode_arguments(args)
            if self._config.log_calls:
                logger.info(f"Calling procedure: {procedure} with params: {payload}")

            start_time = time.time()
            try:
                rows = await self._client.fetch(query, payload)
            except Exception:
                self.metrics["failed_calls"] += 1
                raise
            self._record_timing(time.time() - start_time)

            value = self._first_value(rows)
            if self._config.log_results:
                logger.info(f"Procedure {procedure} returned: {value}")
            return value

        call.__name__ = name
        call.__qualname__ = f"{self.__class__.__name__}.{name}"
        return call

    def _disabled(self, name: str) -> Callable[..., Any]:
        def call(*args: JsonValue) -> Any:
            self._check_open(name)
            self.metrics["refused_calls"] += 1
            raise DisabledFunctionError(name)

        call.__name__ = name
        call.__qualname__ = f"{self.__class__.__name__}.{name}"
        return call

    @staticmethod
    def _first_value(rows) -> Any:
        if not rows:
            return None
        values = list(rows[0].values())
        if not values:
            return None
        return decode_result(values[0])

    def _record_timing(self, execution_time: float) -> None:
        self.metrics["successful_calls"] += 1
        self.metrics["total_execution_time"] += execution_time
        self.metrics["avg_execution_time"] = self.metrics["total_execution_time"] / self.metrics["successful_calls"]
        self.metrics["max_execution_time"] = max(self.metrics["max_execution_time"], execution_time)
        self.metrics["min_execution_time"] = min(self.metrics["min_execution_time"], execution_time)

    def _check_open(self, name: str) -> None:
        if self._closed:
            raise ProxyClosedError(f"Cannot call {name}: the proxy has been destroyed")

    @property
    def enabled(self) -> Tuple[str, ...]:
        return self._result.enabled_names

    @property
    def disabled(self) -> Tuple[str, ...]:
        return self._result.disabled_names

    @property
    def result(self) -> ReconciliationResult:
        return self._result

    @property
    def changes(self) -> Optional[ChangeSet]:
        return self._changes

    @property
    def active(self) -> bool:
        return not self._closed

    async def destroy(self) -> None:
        """Destroy the proxy, stopping its reverse channel.

        Safe to call more than once. The handle is released even when
        stopping the channel fails; that error is raised afterwards.
        """
        if self._closed:
            return
        self._closed = True

        try:
            if self.channel is not None:
                await self.channel.stop()
        finally:
            if self._on_destroy is not None:
                await self._on_destroy(self)

        logger.debug(f"Destroyed proxy over schema {self._config.schema}")

    async def __aenter__(self) -> "ProxyHandle":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.destroy()

    def __getattr__(self, name: str) -> Callable[..., Any]:
        functions = self.__dict__.get("_functions", {})
        if name in functions:
            return functions[name]
        raise AttributeError(f"No function with name: {name} is available on this proxy")

    def __getitem__(self, name: str) -> Callable[..., Any]:
        return self._functions[name]

    def __contains__(self, name: object) -> bool:
        return name in self._functions

    def __iter__(self) -> Iterator[str]:
        return iter(self._functions)

    def __len__(self) -> int:
        return len(self._functions)

    def __str__(self) -> str:
        return (
            f"{self.__class__.__name__}(schema={self._config.schema}, "
            f"enabled={len(self.enabled)}, disabled={len(self.disabled)}, active={self.active})"
        )


def build_proxy(
    result: ReconciliationResult,
    client: RemoteClient,
    config: ProxyConfig,
    changes: Optional[ChangeSet] = None,
    on_destroy: Optional[Callable[[ProxyHandle], Awaitable[None]]] = None
) -> ProxyHandle:
    """Build the callable surface for a reconciliation result."""
    proxy = ProxyHandle(client, config, result, changes=changes, on_destroy=on_destroy)
    logger.debug(f"Built proxy: {proxy}")
    return proxy

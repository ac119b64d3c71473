"""
Reconciliation of remote procedures.

This module applies the configured policy to a change set: functions are
created, overwritten or disabled, and orphaned proxy procedures are optionally
dropped.
"""

import time

from pgproxy.base import RemoteClient
from pgproxy.compiler import qualified_name
from pgproxy.config import ProxyConfig
from pgproxy.models import ChangeSet, FunctionSpec, ReconciliationResult
from pgproxy.utils.logging import get_logger

logger = get_logger(__name__)


class Synchronizer:
    """Reconciles a change set with the remote server."""

    def __init__(self, client: RemoteClient, config: ProxyConfig):
        """Initialize the synchronizer.

        Args:
            client: The remote client
            config: The proxy configuration holding the policy
        """
        self.client = client
        self.config = config
        self.metrics = {
            "created": 0,
            "updated": 0,
            "dropped": 0,
            "disabled": 0,
            "total_write_time": 0.0,
        }

    async def reconcile(self, changes: ChangeSet) -> ReconciliationResult:
        """Reconcile a change set.

        Writes run one at a time; a failure propagates immediately and leaves
        earlier writes in place.

        Args:
            changes: The change set produced by the change detector

        Returns:
            The enabled and disabled functions
        """
        result = ReconciliationResult(enabled=list(changes.unchanged))

        if changes.new:
            if self.config.create_new:
                for fn in changes.new:
                    await self._write(fn, "Created")
                    self.metrics["created"] += 1
                    result.enabled.append(fn)
            else:
                # A function that does not exist on the server cannot be called
                for fn in changes.new:
                    logger.warning(f"Function {fn.name} is missing on the server and has been disabled")
                result.disabled.extend(changes.new)

        if changes.changed:
            if self.config.update_changed:
                for fn in changes.changed:
                    await self._write(fn, "Updated")
                    self.metrics["updated"] += 1
                    result.enabled.append(fn)
            else:
                # The server would run source that no longer matches the local one
                for fn in changes.changed:
                    logger.warning(f"Function {fn.name} differs from the server and has been disabled")
                result.disabled.extend(changes.changed)

        if changes.orphaned and self.config.purge_orphaned:
            for orphan in changes.orphaned:
                await self.drop(orphan.name)

        self.metrics["disabled"] += len(result.disabled)
        return result

    async def drop(self, name: str) -> None:
        """Drop the proxy procedure of a function."""
        procedure = qualified_name(self.config.schema, name)
        start_time = time.time()
        await self.client.execute(f"drop function if exists {procedure}(json)")
        self.metrics["total_write_time"] += time.time() - start_time
        self.metrics["dropped"] += 1
        logger.info(f"Dropped orphaned procedure {procedure}")

    async def _write(self, fn: FunctionSpec, verb: str) -> None:
        start_time = time.time()
        await self.client.execute(fn.definition)
        self.metrics["total_write_time"] += time.time() - start_time
        logger.info(f"{verb} procedure {qualified_name(self.config.schema, fn.name)}")

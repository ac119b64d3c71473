"""
Change detection against the remote catalog.

This module compares compiled function specs with the proxy procedures stored
in pg_proc and classifies each as new, changed or unchanged, and every
unrequested proxy procedure as orphaned.
"""

from typing import List, Sequence

from pgproxy.base import RemoteClient
from pgproxy.fingerprint import fingerprint_body
from pgproxy.models import ChangeSet, FunctionSpec, OrphanedProcedure, RemoteProcedureRecord
from pgproxy.utils.logging import get_logger

logger = get_logger(__name__)

CATALOG_QUERY = """
    SELECT
        n.nspname AS schema_name,
        p.proname AS proname,
        p.prosrc AS prosrc
    FROM
        pg_proc p
        JOIN pg_namespace n ON n.oid = p.pronamespace
    WHERE
        n.nspname = $1
        AND p.proname LIKE 'pgproxy\\_%'
    ORDER BY
        p.proname
"""


class ChangeDetector:
    """Classifies requested functions against remote state."""

    def __init__(self, client: RemoteClient, schema: str):
        """Initialize the change detector.

        Args:
            client: The remote client
            schema: The schema holding the proxy procedures
        """
        self.client = client
        self.schema = schema

    async def fetch_remote(self) -> List[RemoteProcedureRecord]:
        """Fetch every proxy procedure in the schema."""
        rows = await self.client.fetch(CATALOG_QUERY, self.schema)
        return [
            RemoteProcedureRecord(
                qualified_name=f"{row['schema_name']}.{row['proname']}",
                body=row["prosrc"] or "",
            )
            for row in rows
        ]

    async def detect(self, functions: Sequence[FunctionSpec]) -> ChangeSet:
        """Detect changes between the requested functions and remote state.

        Args:
            functions: The compiled function specs

        Returns:
            The change set
        """
        records = await self.fetch_remote()
        changes = ChangeSet()

        for fn in functions:
            record = next(
                (r for r in records if r.procedure_name == fn.procedure_name),
                None
            )
            if record is None:
                changes.new.append(fn)
            elif fingerprint_body(fn.definition) == fingerprint_body(record.body):
                changes.unchanged.append(fn)
            else:
                changes.changed.append(fn)

        requested = {fn.procedure_name for fn in functions}
        changes.orphaned = [
            OrphanedProcedure(name=record.name)
            for record in records
            if record.procedure_name not in requested
        ]

        logger.info(f"Detected changes in schema {self.schema}: {changes.summary()}")
        return changes

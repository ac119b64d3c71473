"""
Pytest configuration and fixtures for the pgproxy test suite.

This module provides an in-memory remote client that emulates the parts of
PostgreSQL that pgproxy touches: the pg_proc catalog, CREATE/DROP FUNCTION,
procedure invocation and LISTEN/NOTIFY.
"""

import json
import re
from typing import Any, Callable, Dict, List, Optional

import pytest

from pgproxy.base import RemoteClient, RemoteExecutionError
from pgproxy.fingerprint import extract_body

_CREATE = re.compile(r"create or replace function (\w+)\.(\w+)\(", re.IGNORECASE)
_DROP = re.compile(r"drop function if exists (\w+)\.(\w+)\(", re.IGNORECASE)
_INVOKE = re.compile(r"^select (\w+)\.(pgproxy_\w+)\(\$1::json\)$")


class FakeClient(RemoteClient):
    """In-memory stand-in for a PostgreSQL server with PL/v8."""

    def __init__(self):
        # (schema, proname) -> prosrc
        self.procedures: Dict[tuple, str] = {}
        # Python implementations run when a procedure is invoked, by function name
        self.implementations: Dict[str, Callable[..., Any]] = {}
        self.executed: List[str] = []
        self.fetched: List[tuple] = []
        self.listeners: Dict[str, List[Callable[[str, str], None]]] = {}
        self.fail_on: Optional[str] = None

    def install(self, schema: str, name: str, body: str) -> None:
        """Store a procedure directly, bypassing pgproxy."""
        self.procedures[(schema, f"pgproxy_{name}")] = body

    async def fetch(self, query: str, *params: Any) -> List[Dict[str, Any]]:
        self.fetched.append((query, params))

        if "pg_proc" in query:
            schema = params[0]
            return [
                {"schema_name": s, "proname": proname, "prosrc": prosrc}
                for (s, proname), prosrc in sorted(self.procedures.items())
                if s == schema and proname.startswith("pgproxy_")
            ]

        match = _INVOKE.match(query.strip())
        if match:
            schema, proname = match.groups()
            if (schema, proname) not in self.procedures:
                raise RemoteExecutionError(f'function {schema}.{proname}(json) does not exist')
            implementation = self.implementations[proname[len("pgproxy_"):]]
            args = json.loads(params[0])
            return [{proname: json.dumps(implementation(*args))}]

        raise AssertionError(f"Unexpected query: {query}")

    async def execute(self, query: str, *params: Any) -> None:
        if self.fail_on and self.fail_on in query:
            raise RemoteExecutionError(f"syntax error near {self.fail_on}")

        self.executed.append(query)

        match = _CREATE.search(query)
        if match:
            self.procedures[match.groups()] = extract_body(query)
            return

        match = _DROP.search(query)
        if match:
            self.procedures.pop(match.groups(), None)
            return

        raise AssertionError(f"Unexpected command: {query}")

    async def subscribe(self, topic, callback) -> None:
        self.listeners.setdefault(topic, []).append(callback)

    async def unsubscribe(self, topic, callback) -> None:
        if callback in self.listeners.get(topic, []):
            self.listeners[topic].remove(callback)

    def notify(self, topic: str, payload: Any) -> None:
        """Deliver a notification as the server would after pg_notify."""
        if not isinstance(payload, str):
            payload = json.dumps(payload)
        for callback in list(self.listeners.get(topic, [])):
            callback(topic, payload)


@pytest.fixture
def fake_client():
    """Create an empty fake server."""
    client = FakeClient()
    client.implementations.update({
        "add": lambda a, b: a + b,
        "system_name": lambda name: "".join(
            c for c in name.lower() if c.isalpha() or c == " "
        ).replace(" ", "_"),
        "echo": lambda *args: list(args),
        "nothing": lambda: None,
    })
    return client


@pytest.fixture
def functions():
    """A small batch of JavaScript functions."""
    return {
        "add": "(a, b) => a + b",
        "system_name": """(name) => {
            return name
                .toLowerCase()
                .replace(/[^a-zA-Z ]/g, '')
                .replace(/ /g, '_');
        }""",
    }

"""
Remote procedure compiler.

This module renders a JavaScript function, its sibling functions and any
reverse call shims into a single PL/v8 procedure definition.
"""

import re
from typing import Iterable, List, Mapping, Optional, Sequence, Union

from pgproxy.base import ConfigurationError
from pgproxy.constants import (
    BODY_MARKER, CALL_ACTION, DEFAULT_SCHEMA, NOTIFY_CHANNEL, PROCEDURE_PREFIX
)
from pgproxy.models import FunctionSource, FunctionSpec
from pgproxy.utils.logging import get_logger

logger = get_logger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

SourceLike = Union[str, FunctionSource]

PROCEDURE_TEMPLATE = """\
create or replace function {schema}.{procedure}(params json)
returns json
language plv8
as
{marker}
{shims}
let {name} = {source};
let return_value = {name}.apply(plv8, params);
return JSON.stringify(return_value);
{marker}
"""

SIBLING_SHIM_TEMPLATE = """\
function {name}() {{
    let rows = plv8.execute('select {schema}.{procedure}($1::json) as result', [JSON.stringify(Array.prototype.slice.call(arguments))]);
    return rows.length ? rows[0].result : null;
}}
"""

REVERSE_SHIM_TEMPLATE = """\
function {name}() {{
    let payload = {{fn: '{name}', params: Array.prototype.slice.call(arguments), action: '{action}'}};
    plv8.execute('select pg_notify($1, $2)', ['{channel}', JSON.stringify(payload)]);
}}
"""


def validate_identifier(value: str, kind: str) -> str:
    """Check that a name can be embedded in SQL and JavaScript unquoted.

    Raises:
        ConfigurationError: If the name is not a plain identifier
    """
    if not isinstance(value, str) or not _IDENTIFIER.match(value):
        raise ConfigurationError(f"Invalid {kind} name: {value!r}")
    return value


def procedure_name(name: str) -> str:
    """Mangled procedure name for a function."""
    return f"{PROCEDURE_PREFIX}{name}"


def qualified_name(schema: str, name: str) -> str:
    """Schema-qualified procedure name for a function."""
    return f"{schema}.{procedure_name(name)}"


def render_source(source: SourceLike) -> str:
    """Render a function source as a JavaScript function expression."""
    if isinstance(source, FunctionSource):
        return source.render()
    if isinstance(source, str):
        return source.strip()
    raise ConfigurationError(
        f"Function source must be a string or FunctionSource, got {type(source).__name__}"
    )


class ProcedureCompiler:
    """Compiles function sources into PL/v8 procedure definitions."""

    def __init__(self, schema: str = DEFAULT_SCHEMA, expose_names: Optional[Iterable[str]] = None):
        """Initialize the compiler.

        Args:
            schema: The schema the procedures are created in
            expose_names: Names of local functions callable from the server
        """
        self.schema = validate_identifier(schema, "schema")
        self.expose_names = sorted(
            validate_identifier(name, "exposed function") for name in (expose_names or ())
        )

    def compile(self, name: str, source: SourceLike, siblings: Sequence[str] = ()) -> str:
        """Compile one function into a procedure definition.

        Args:
            name: The function name
            source: The function source
            siblings: Names of every function in the batch; the function
                itself is skipped

        Returns:
            The CREATE OR REPLACE FUNCTION statement
        """
        validate_identifier(name, "function")

        shims = []
        for sibling in sorted(set(siblings)):
            if sibling == name:
                continue
            shims.append(SIBLING_SHIM_TEMPLATE.format(
                name=sibling,
                schema=self.schema,
                procedure=procedure_name(sibling),
            ))
        for exposed in self.expose_names:
            shims.append(REVERSE_SHIM_TEMPLATE.format(
                name=exposed,
                action=CALL_ACTION,
                channel=NOTIFY_CHANNEL,
            ))

        return PROCEDURE_TEMPLATE.format(
            schema=self.schema,
            procedure=procedure_name(name),
            marker=BODY_MARKER,
            shims="".join(shims),
            name=name,
            source=render_source(source),
        )

    def compile_all(self, functions: Mapping[str, SourceLike]) -> List[FunctionSpec]:
        """Compile a batch of functions.

        Args:
            functions: Mapping of function name to source

        Entries whose value is neither a string nor a FunctionSource are
        skipped, so a mapping may carry other members alongside its functions.

        Returns:
            One FunctionSpec per function, in mapping order

        Raises:
            ConfigurationError: If a name is invalid or clashes with an
                exposed function
        """
        sources = {}
        for name, source in functions.items():
            if not isinstance(source, (str, FunctionSource)):
                logger.debug(f"Skipping {name}: {type(source).__name__} is not a function source")
                continue
            sources[name] = source

        names = list(sources.keys())
        for name in names:
            validate_identifier(name, "function")
            # Leading underscores are reserved for the proxy handle's own attributes
            if name.startswith("_"):
                raise ConfigurationError(f"Invalid function name: {name} (names cannot start with an underscore)")

        clashes = sorted(set(names) & set(self.expose_names))
        if clashes:
            raise ConfigurationError(
                f"Functions cannot be both synchronized and exposed: {', '.join(clashes)}"
            )

        specs = []
        for name, source in sources.items():
            rendered = render_source(source)
            specs.append(FunctionSpec(
                name=name,
                source=rendered,
                definition=self.compile(name, rendered, names),
            ))
            logger.debug(f"Compiled function {name} into {qualified_name(self.schema, name)}")

        return specs

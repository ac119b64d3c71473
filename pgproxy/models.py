"""
Data models for pgproxy.

This module provides the immutable records that flow through a synchronization
run: function specs, remote catalog snapshots, change sets, reconciliation
results and reverse call payloads.
"""

from typing import Any, List, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pgproxy.constants import CALL_ACTION, PROCEDURE_PREFIX


class FunctionSource(BaseModel):
    """A JavaScript function given as a declared parameter list and a body."""

    model_config = ConfigDict(frozen=True)

    params: Tuple[str, ...] = Field(default=(), description="Parameter names, in call order")
    body: str = Field(..., description="JavaScript statements forming the function body")

    @field_validator("params")
    @classmethod
    def validate_params(cls, v):
        """Validate that every parameter is a plain identifier."""
        for param in v:
            if not param.isidentifier():
                raise ValueError(f"Invalid parameter name: {param!r}")
        return v

    def render(self) -> str:
        """Render the source as a JavaScript function expression."""
        return f"function ({', '.join(self.params)}) {{\n{self.body}\n}}"


class FunctionSpec(BaseModel):
    """A requested function together with its compiled remote definition."""

    model_config = ConfigDict(frozen=True)

    name: str
    source: str
    definition: str

    @property
    def procedure_name(self) -> str:
        return f"{PROCEDURE_PREFIX}{self.name}"


class RemoteProcedureRecord(BaseModel):
    """Snapshot of a proxy procedure as stored in the remote catalog."""

    model_config = ConfigDict(frozen=True)

    qualified_name: str
    body: str

    @property
    def procedure_name(self) -> str:
        return self.qualified_name.rsplit(".", 1)[-1]

    @property
    def name(self) -> str:
        """The function name with the procedure prefix removed."""
        return self.procedure_name[len(PROCEDURE_PREFIX):]


class OrphanedProcedure(BaseModel):
    """A remote proxy procedure with no counterpart in the request."""

    model_config = ConfigDict(frozen=True)

    name: str


class ChangeSet(BaseModel):
    """Classification of a request against remote state."""

    new: List[FunctionSpec] = Field(default_factory=list)
    changed: List[FunctionSpec] = Field(default_factory=list)
    unchanged: List[FunctionSpec] = Field(default_factory=list)
    orphaned: List[OrphanedProcedure] = Field(default_factory=list)

    def summary(self) -> dict:
        return {
            "new": len(self.new),
            "changed": len(self.changed),
            "unchanged": len(self.unchanged),
            "orphaned": len(self.orphaned),
        }


class ReconciliationResult(BaseModel):
    """Functions that may be called and functions that must be refused."""

    enabled: List[FunctionSpec] = Field(default_factory=list)
    disabled: List[FunctionSpec] = Field(default_factory=list)

    @property
    def enabled_names(self) -> Tuple[str, ...]:
        return tuple(fn.name for fn in self.enabled)

    @property
    def disabled_names(self) -> Tuple[str, ...]:
        return tuple(fn.name for fn in self.disabled)


class ReverseCallPayload(BaseModel):
    """A call published by a remote procedure for a local function."""

    model_config = ConfigDict(frozen=True)

    fn: str
    params: List[Any] = Field(default_factory=list)
    action: str

    @property
    def is_call(self) -> bool:
        return self.action == CALL_ACTION

"""
Proxy configuration for pgproxy.

This module provides the configuration model recognized by PGProxy.create.
"""

from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from pgproxy.base import ConfigurationError, RemoteClient
from pgproxy.compiler import validate_identifier
from pgproxy.constants import DEFAULT_SCHEMA


class ProxyConfig(BaseModel):
    """Configuration for a synchronization run and the proxy it produces."""

    model_config = ConfigDict(
        arbitrary_types_allowed=True, frozen=True, populate_by_name=True, extra="forbid"
    )

    # Connection settings
    client: RemoteClient = Field(..., description="Remote client used for every query")
    schema_name: str = Field(DEFAULT_SCHEMA, alias="schema", description="Schema holding the proxy procedures")

    # Reconciliation policy
    create_new: bool = Field(True, description="Whether to create functions missing on the server")
    update_changed: bool = Field(True, description="Whether to overwrite functions whose source changed")
    purge_orphaned: bool = Field(False, description="Whether to drop proxy procedures absent from the request")

    # Reverse call settings
    expose: Optional[Dict[str, Callable[..., Any]]] = Field(
        None, description="Local functions the server may call through notifications"
    )

    # Logging settings
    log_calls: bool = Field(False, description="Whether to log proxy calls")
    log_results: bool = Field(False, description="Whether to log proxy call results")

    @field_validator("schema_name")
    @classmethod
    def validate_schema(cls, v):
        """Validate that the schema is a plain identifier."""
        return validate_identifier(v, "schema")

    @field_validator("expose")
    @classmethod
    def validate_expose(cls, v):
        """Validate that every exposed name is a plain identifier."""
        if v is None:
            return v
        for name, fn in v.items():
            validate_identifier(name, "exposed function")
            if not callable(fn):
                raise ValueError(f"Exposed function {name} is not callable")
        return v

    @property
    def schema(self) -> str:
        return self.schema_name

    @classmethod
    def from_options(cls, client: Optional[RemoteClient] = None, **options) -> "ProxyConfig":
        """Build a configuration from keyword options.

        Raises:
            ConfigurationError: If no client is given or an option is invalid
        """
        if client is None:
            raise ConfigurationError("Must provide a valid remote client")

        try:
            return cls(client=client, **options)
        except ConfigurationError:
            raise
        except ValidationError as e:
            raise ConfigurationError(f"Invalid proxy configuration: {e}") from e

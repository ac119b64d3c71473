"""
Base classes for the pgproxy package.

This module provides the exception hierarchy and the abstract remote client
interface that the synchronization engine consumes.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, List, Mapping


# Callback invoked with (topic, payload) for every inbound notification
NotificationCallback = Callable[[str, str], None]


class ProxyError(Exception):
    """Base exception for pgproxy errors."""
    pass


class ConfigurationError(ProxyError):
    """Exception raised when a proxy is created with an invalid configuration."""
    pass


class DisabledFunctionError(ProxyError):
    """Exception raised when a disabled function is invoked."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"The function with name: {name} has been disabled because it is "
            f"out of sync with the database"
        )


class RemoteExecutionError(ProxyError):
    """Exception raised when the remote database rejects an operation."""
    pass


class MalformedNotificationError(ProxyError):
    """Exception raised when a reverse call notification cannot be decoded."""
    pass


class ProxyClosedError(ProxyError):
    """Exception raised when a destroyed proxy is used."""
    pass


class RemoteClient(ABC):
    """Base class for remote database clients.

    A client exposes query execution and publish/subscribe notifications.
    Rows are returned as mappings of column name to value, in column order.
    """

    @abstractmethod
    async def fetch(self, query: str, *params: Any) -> List[Mapping[str, Any]]:
        """Execute a query and return all rows."""
        pass

    @abstractmethod
    async def execute(self, query: str, *params: Any) -> None:
        """Execute a command, discarding any rows."""
        pass

    @abstractmethod
    async def subscribe(self, topic: str, callback: NotificationCallback) -> None:
        """Start delivering notifications on a topic to the callback."""
        pass

    @abstractmethod
    async def unsubscribe(self, topic: str, callback: NotificationCallback) -> None:
        """Stop delivering notifications on a topic to the callback."""
        pass

    def __str__(self) -> str:
        return f"{self.__class__.__name__}()"

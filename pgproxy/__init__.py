"""
pgproxy: run local JavaScript functions on PostgreSQL through PL/v8.

This package synchronizes a set of named functions with PL/v8 procedures on a
PostgreSQL server and returns a proxy whose callables execute them remotely.
Exposed local functions can be called back from the server through
notifications.
"""

__version__ = "0.2.0"

from .base import (
    ProxyError, ConfigurationError, DisabledFunctionError, RemoteExecutionError,
    MalformedNotificationError, ProxyClosedError, RemoteClient
)
from .client import AsyncpgClient
from .compiler import ProcedureCompiler
from .config import ProxyConfig
from .detector import ChangeDetector
from .factory import PGProxy, default_factory, create, destroy
from .fingerprint import normalize, digest
from .models import (
    FunctionSource, FunctionSpec, RemoteProcedureRecord, OrphanedProcedure,
    ChangeSet, ReconciliationResult, ReverseCallPayload
)
from .proxy import ProxyHandle, build_proxy
from .reverse import ReverseChannel
from .synchronizer import Synchronizer

__all__ = [
    'ProxyError', 'ConfigurationError', 'DisabledFunctionError', 'RemoteExecutionError',
    'MalformedNotificationError', 'ProxyClosedError', 'RemoteClient',
    'AsyncpgClient',
    'ProcedureCompiler',
    'ProxyConfig',
    'ChangeDetector',
    'PGProxy', 'default_factory', 'create', 'destroy',
    'normalize', 'digest',

    # Data models
    'FunctionSource',
    'FunctionSpec',
    'RemoteProcedureRecord',
    'OrphanedProcedure',
    'ChangeSet',
    'ReconciliationResult',
    'ReverseCallPayload',

    'ProxyHandle', 'build_proxy',
    'ReverseChannel',
    'Synchronizer'
]

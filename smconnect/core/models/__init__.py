"""
Domain models — Pydantic types for the connector.

All models are re-exported here for convenient access:

    from smconnect.core.models import ResourceIdentifier, ServerHealth, SshHostEntry
"""

from smconnect.core.models.arn import ResourceIdentifier, ResourceType
from smconnect.core.models.outcome import ConnectionOutcome, ConnectionState, OutcomeKind
from smconnect.core.models.prerequisites import HostVariant, PrerequisiteSet, RemoteExtension
from smconnect.core.models.receipt import Receipt
from smconnect.core.models.server import ServerHealth
from smconnect.core.models.ssh import FixRecord, Issue, IssueKind, SshHostEntry

__all__ = [
    # outcome.py
    "ConnectionOutcome",
    "ConnectionState",
    # ssh.py
    "FixRecord",
    # prerequisites.py
    "HostVariant",
    "Issue",
    "IssueKind",
    "OutcomeKind",
    "PrerequisiteSet",
    # receipt.py
    "Receipt",
    "RemoteExtension",
    # arn.py
    "ResourceIdentifier",
    "ResourceType",
    # server.py
    "ServerHealth",
    "SshHostEntry",
]

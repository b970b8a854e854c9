"""OS-native service management.

Backends:
- systemd units on Linux (system and user)
- OpenRC init scripts on Alpine/Gentoo
- rc.d scripts on FreeBSD and friends
- launchd agents and daemons on macOS
- sc.exe and WinSW services on Windows

Example:
    from svcman.service import ServiceDescriptor, ServiceLevel, ServiceManager

    manager = ServiceManager()
    manager.install(ServiceDescriptor(name="echoer", program="/bin/echo"))
    status = manager.status("echoer", ServiceLevel.USER)
"""

from svcman.service.base import (
    BackendHandle,
    OperationResult,
    RestartPolicy,
    ServiceLevel,
    ServiceManagerKind,
    ServiceState,
    ServiceStatus,
)
from svcman.service.descriptor import ServiceDescriptor, validate_descriptor
from svcman.service.errors import (
    ArtifactIOError,
    CommandFailed,
    InvalidDescriptor,
    NoBackendAvailable,
    NotFound,
    PermissionDenied,
    ServiceError,
    UnsupportedOperation,
)
from svcman.service.manager import ServiceManager

__all__ = [
    "ArtifactIOError",
    "BackendHandle",
    "CommandFailed",
    "InvalidDescriptor",
    "NoBackendAvailable",
    "NotFound",
    "OperationResult",
    "PermissionDenied",
    "RestartPolicy",
    "ServiceDescriptor",
    "ServiceError",
    "ServiceLevel",
    "ServiceManager",
    "ServiceManagerKind",
    "ServiceState",
    "ServiceStatus",
    "UnsupportedOperation",
    "validate_descriptor",
]

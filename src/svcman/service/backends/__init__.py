"""Service backend detection and factory.

Each host platform family has an ordered list of candidate backends. The
selector probes them in order (control binary on PATH plus, for some
backends, a marker path proving the manager is actually in charge) and
binds the first hit into a ``BackendHandle``.
"""

import importlib
import logging
import os
import shutil
import sys
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from svcman.service.base import BackendHandle, ServiceEncoder, ServiceManagerKind
from svcman.service.errors import NoBackendAvailable, NotFound

if TYPE_CHECKING:
    from svcman.config.models import SvcmanConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackendProbe:
    """How to recognise a backend on the host."""

    binary: str
    marker: str | None = None


PROBES: dict[ServiceManagerKind, BackendProbe] = {
    # systemd is only in charge when PID 1 created this directory
    ServiceManagerKind.SYSTEMD: BackendProbe("systemctl", "/run/systemd/system"),
    ServiceManagerKind.OPENRC: BackendProbe("rc-service", "/etc/init.d"),
    ServiceManagerKind.RCD: BackendProbe("service", "/etc/rc.subr"),
    ServiceManagerKind.LAUNCHD: BackendProbe("launchctl"),
    ServiceManagerKind.SC: BackendProbe("sc.exe"),
    ServiceManagerKind.WINSW: BackendProbe("winsw"),
}

CANDIDATES: dict[str, list[ServiceManagerKind]] = {
    "linux": [
        ServiceManagerKind.SYSTEMD,
        ServiceManagerKind.OPENRC,
        ServiceManagerKind.RCD,
    ],
    "windows": [ServiceManagerKind.SC, ServiceManagerKind.WINSW],
    "bsd": [ServiceManagerKind.RCD],
    "macos": [ServiceManagerKind.LAUNCHD],
}

ENCODERS: dict[ServiceManagerKind, str] = {
    ServiceManagerKind.SYSTEMD: "svcman.service.backends.systemd.SystemdBackend",
    ServiceManagerKind.OPENRC: "svcman.service.backends.openrc.OpenRcBackend",
    ServiceManagerKind.RCD: "svcman.service.backends.rcd.RcdBackend",
    ServiceManagerKind.LAUNCHD: "svcman.service.backends.launchd.LaunchdBackend",
    ServiceManagerKind.SC: "svcman.service.backends.sc.ScBackend",
    ServiceManagerKind.WINSW: "svcman.service.backends.winsw.WinSwBackend",
}


def platform_family(platform: str) -> str:
    """Map a ``sys.platform`` value to a platform family."""
    if platform.startswith("linux"):
        return "linux"
    if platform in ("win32", "cygwin"):
        return "windows"
    if platform == "darwin":
        return "macos"
    if platform.startswith(("freebsd", "openbsd", "netbsd", "dragonfly")):
        return "bsd"
    return platform


class BackendSelector:
    """Chooses the service manager governing this host.

    All host queries go through the injected ``which`` and ``exists``
    callables, so detection can be exercised for any platform.

    Example:
        selector = BackendSelector()
        handle = selector.detect()
        handle = selector.detect(ServiceManagerKind.OPENRC)
    """

    def __init__(
        self,
        platform: str | None = None,
        which: Callable[[str], str | None] = shutil.which,
        exists: Callable[[str], bool] = os.path.exists,
        binaries: Mapping[ServiceManagerKind, Path] | None = None,
    ):
        """Initialize the selector.

        Args:
            platform: ``sys.platform``-style name; defaults to the current host.
            which: PATH lookup.
            exists: Filesystem existence check for marker paths.
            binaries: Explicit control binary paths that bypass PATH lookup.
        """
        self.platform = platform or sys.platform
        self._which = which
        self._exists = exists
        self._binaries = dict(binaries or {})

    @property
    def family(self) -> str:
        return platform_family(self.platform)

    @property
    def candidates(self) -> list[ServiceManagerKind]:
        """Candidate kinds for this platform, in probe order."""
        return list(CANDIDATES.get(self.family, []))

    def probe(self, kind: ServiceManagerKind) -> BackendHandle | None:
        """Return a handle if ``kind`` is usable on this host."""
        target = PROBES[kind]

        explicit = self._binaries.get(kind)
        if explicit is not None:
            binary = str(explicit) if self._exists(str(explicit)) else None
        else:
            binary = self._which(target.binary)

        if binary is None:
            logger.debug("%s: %s not found", kind.value, target.binary)
            return None
        if target.marker is not None and not self._exists(target.marker):
            logger.debug("%s: marker %s missing", kind.value, target.marker)
            return None

        logger.debug("%s: using %s", kind.value, binary)
        return BackendHandle(kind=kind, binary=Path(binary).absolute())

    def detect(self, override: ServiceManagerKind | None = None) -> BackendHandle:
        """Detect the backend to use.

        Args:
            override: Explicit backend; skips selection but is still probed.

        Raises:
            NotFound: If the overridden backend is not available.
            NoBackendAvailable: If no candidate probes successfully.
        """
        if override is not None:
            handle = self.probe(override)
            if handle is None:
                raise NotFound(
                    f"Service manager '{override.value}' is not available on this host"
                )
            return handle

        for kind in self.candidates:
            handle = self.probe(kind)
            if handle is not None:
                return handle

        raise NoBackendAvailable(self.platform, [k.value for k in self.candidates])

    def available(self) -> list[ServiceManagerKind]:
        """All candidate kinds that probe successfully, in order."""
        return [kind for kind in self.candidates if self.probe(kind) is not None]


def detect_backend(
    override: ServiceManagerKind | None = None,
    config: "SvcmanConfig | None" = None,
) -> BackendHandle:
    """Detect the best available backend for the current host.

    Args:
        override: Explicit backend kind, or None to detect.
        config: Supplies explicit binary paths and the default override.
    """
    binaries = config.binary_overrides() if config else {}
    if override is None and config is not None:
        override = config.backend
    return BackendSelector(binaries=binaries).detect(override)


def get_encoder(
    handle: BackendHandle, config: "SvcmanConfig | None" = None
) -> ServiceEncoder:
    """Instantiate the encoder for a bound backend.

    Raises:
        ValueError: If the kind has no registered encoder.
    """
    if handle.kind not in ENCODERS:
        raise ValueError(f"Unknown backend: {handle.kind}. Available: {list(ENCODERS)}")

    # Import lazily to avoid loading unnecessary backends
    module_path, class_name = ENCODERS[handle.kind].rsplit(".", 1)
    module = importlib.import_module(module_path)
    encoder_class = getattr(module, class_name)
    return encoder_class(handle, config)


def parse_kind(name: str) -> ServiceManagerKind:
    """Parse a backend name such as 'systemd'.

    Raises:
        ValueError: If the name is not a known backend.
    """
    try:
        return ServiceManagerKind(name.lower())
    except ValueError:
        valid = ", ".join(k.value for k in ServiceManagerKind)
        raise ValueError(f"Unknown backend: {name}. Available: {valid}") from None


__all__ = [
    "BackendProbe",
    "BackendSelector",
    "CANDIDATES",
    "ENCODERS",
    "PROBES",
    "detect_backend",
    "get_encoder",
    "parse_kind",
    "platform_family",
]

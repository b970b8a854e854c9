"""Platform-neutral service descriptor and its validation."""

import re
import shutil
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType

from svcman.service.base import RestartPolicy, ServiceLevel
from svcman.service.errors import InvalidDescriptor

MAX_NAME_LENGTH = 128

# Letters, digits and a few separators; no whitespace, slashes or shell syntax
NAME_PATTERN = re.compile(r"[A-Za-z0-9][A-Za-z0-9._@-]*")

# Control characters that break unit files, plists and XML. Tab and newline
# survive every backend's escaping in argument and environment values.
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")

# Single-line fields may not contain any control character
LINE_BREAKING_CHARS = re.compile(r"[\x00-\x1f\x7f]")


@dataclass(frozen=True)
class ServiceDescriptor:
    """Description of a service, independent of any service manager.

    Constructed by the caller and never mutated by the core. Durable state
    lives in the OS after install; the descriptor holds no OS handle.
    """

    name: str
    program: Path
    args: tuple[str, ...] = ()
    working_directory: Path | None = None
    environment: Mapping[str, str] = field(default_factory=dict, hash=False)
    install_level: ServiceLevel = ServiceLevel.USER
    autostart: bool = False
    dependencies: frozenset[str] = frozenset()
    restart_policy: RestartPolicy = RestartPolicy.NEVER
    description: str | None = None
    username: str | None = None
    requires_network: bool = False
    contents: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "program", Path(self.program))
        object.__setattr__(self, "args", tuple(str(a) for a in self.args))
        if self.working_directory is not None:
            object.__setattr__(self, "working_directory", Path(self.working_directory))
        object.__setattr__(
            self, "environment", MappingProxyType(dict(self.environment))
        )
        object.__setattr__(self, "dependencies", frozenset(self.dependencies))

    @property
    def command(self) -> list[str]:
        """Program followed by its arguments."""
        return [str(self.program), *self.args]


def name_problems(name: str) -> list[str]:
    """Return the reasons ``name`` is not a legal service name."""
    if not name:
        return ["name must not be empty"]
    if len(name) > MAX_NAME_LENGTH:
        return [f"name must be at most {MAX_NAME_LENGTH} characters"]
    if not NAME_PATTERN.fullmatch(name):
        return [
            f"name {name!r} may only contain letters, digits, '.', '_', '-' "
            "and '@', and must start with a letter or digit"
        ]
    return []


def validate_name(name: str) -> str:
    """Validate a bare service name.

    Raises:
        InvalidDescriptor: If the name is empty or contains illegal characters.
    """
    problems = name_problems(name)
    if problems:
        raise InvalidDescriptor(problems)
    return name


def resolve_program(
    program: Path, which: Callable[[str], str | None] = shutil.which
) -> Path | None:
    """Resolve a relative program via PATH lookup; absolute paths pass through."""
    if program.is_absolute():
        return program
    found = which(str(program))
    if found is None:
        return None
    return Path(found).absolute()


def validate_descriptor(
    draft: ServiceDescriptor,
    which: Callable[[str], str | None] = shutil.which,
) -> ServiceDescriptor:
    """Validate a draft descriptor without touching the system.

    Backend-specific limitations (such as a restart policy a backend cannot
    express) are reported later by the encoder, not here.

    Args:
        draft: Descriptor as built by the caller.
        which: PATH lookup used to resolve a relative program.

    Returns:
        A descriptor with ``program`` resolved to an absolute path.

    Raises:
        InvalidDescriptor: Listing every problem found.
    """
    problems = name_problems(draft.name)

    resolved: Path | None = None
    if not str(draft.program) or str(draft.program) == ".":
        problems.append("program must not be empty")
    else:
        resolved = resolve_program(draft.program, which)
        if resolved is None:
            problems.append(f"program {str(draft.program)!r} not found on PATH")

    for arg in draft.args:
        if CONTROL_CHARS.search(arg):
            problems.append("arguments must not contain control characters")
            break

    for key, value in draft.environment.items():
        if not key or "=" in key or "\0" in key:
            problems.append(f"illegal environment variable name {key!r}")
        if CONTROL_CHARS.search(value):
            problems.append(
                f"environment variable {key!r} contains a control character"
            )

    for dep in sorted(draft.dependencies):
        if name_problems(dep):
            problems.append(f"illegal dependency name {dep!r}")

    if draft.username is not None and not draft.username.strip():
        problems.append("username must not be blank")

    single_line = {
        "program": str(draft.program),
        "description": draft.description,
        "working directory": (
            None if draft.working_directory is None else str(draft.working_directory)
        ),
        "username": draft.username,
    }
    for label, value in single_line.items():
        if value is not None and LINE_BREAKING_CHARS.search(value):
            problems.append(f"{label} must not contain control characters")

    if problems:
        raise InvalidDescriptor(problems)

    return replace(draft, program=resolved)

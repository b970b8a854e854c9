"""Shell quoting for script-based backends (OpenRC, rc.d).

All values interpolated into generated shell scripts go through these
functions. Never build script lines by concatenating raw descriptor values.
"""

import re
import shlex
from collections.abc import Iterable, Mapping

from svcman.service.errors import UnsupportedOperation

SHELL_VAR = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def sh_quote(value: str) -> str:
    """Quote a single value for POSIX sh."""
    return shlex.quote(value)


def sh_quote_command(argv: Iterable[str]) -> str:
    """Quote each word of a command line for POSIX sh."""
    return " ".join(shlex.quote(a) for a in argv)


def sh_assign(var: str, value: str) -> str:
    """Render ``var=value`` with the value quoted."""
    return f"{var}={shlex.quote(value)}"


def sh_quote_for_eval(argv: Iterable[str]) -> str:
    """Quote words for a variable the init framework later passes to ``eval``.

    openrc-run and rc.subr both ``eval`` their command argument variables,
    so each word is quoted once for the eval and the whole string is quoted
    again for the assignment itself.
    """
    return shlex.quote(sh_quote_command(argv))


def sh_exports(environment: Mapping[str, str]) -> list[str]:
    """Render ``export`` lines for an environment mapping, sorted by name."""
    lines = []
    for key in sorted(environment):
        if not SHELL_VAR.match(key):
            raise UnsupportedOperation(
                f"Environment name {key!r} is not a valid shell variable"
            )
        lines.append(f"export {sh_assign(key, environment[key])}")
    return lines


def sh_var_name(name: str) -> str:
    """Convert a service name into a valid shell variable prefix."""
    var = "".join(c if c.isalnum() or c == "_" else "_" for c in name)
    if var[0].isdigit():
        var = f"_{var}"
    return var

"""
Parameter substitution — ``${name}`` / ``$name`` templating for commands.

Commands may reference pipeline parameters in either form::

    docker run --name ${name} -p $port:8080 $image

Parameters are merged over defaults (parameters win). Only names present
in the merged map are replaced, so shell variables the pipeline does not
define (``$HOME``, ``$0``) are left alone by ``substitute`` and reported
by ``validate``, except positional ``$0``..``$9`` which are never
pipeline parameters.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

ParamValue = str | int | float | bool
Parameters = Mapping[str, ParamValue]

_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_CURLY_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")
_BARE_RE = re.compile(r"\$([A-Za-z_][A-Za-z0-9_]*)(?![A-Za-z0-9_])")


def is_valid_name(name: str) -> bool:
    """Whether ``name`` can appear as a ``$name`` / ``${name}`` placeholder."""
    return _NAME_RE.fullmatch(name) is not None


def merge_parameters(
    parameters: Parameters | None = None,
    defaults: Parameters | None = None,
) -> dict[str, ParamValue]:
    """Defaults overridden by parameters. Keys are case-sensitive."""
    return {**(defaults or {}), **(parameters or {})}


def to_text(value: ParamValue) -> str:
    """Textual form of a parameter value.

    Booleans render lower-case so they read naturally in shell flags.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def substitute(
    command: str,
    parameters: Parameters | None = None,
    defaults: Parameters | None = None,
) -> str:
    """Resolve parameter placeholders in ``command``.

    ``${name}`` is replaced first so the bare pass never sees a partial
    ``$name`` inside braces. The bare pass only matches whole names:
    ``$name2`` is untouched by a substitution for ``name``.

    Args:
        command: Command template.
        parameters: Caller-supplied values.
        defaults: Fallback values.

    Returns:
        The command with every known placeholder replaced.
    """
    merged = merge_parameters(parameters, defaults)
    if not merged:
        return command

    result = command
    for key, value in merged.items():
        text = to_text(value)
        result = re.sub(r"\$\{" + re.escape(key) + r"\}", lambda _m: text, result)

    for key, value in merged.items():
        text = to_text(value)
        result = re.sub(
            r"\$" + re.escape(key) + r"(?![A-Za-z0-9_])",
            lambda _m: text,
            result,
        )

    return result


def extract_names(command: str) -> list[str]:
    """Placeholder names referenced by ``command``, deduplicated.

    Braced names are listed before bare ones, each in order of
    appearance.
    """
    names: dict[str, None] = {}
    for match in _CURLY_RE.finditer(command):
        names.setdefault(match.group(1), None)
    for match in _BARE_RE.finditer(command):
        names.setdefault(match.group(1), None)
    return list(names)


def validate(
    command: str,
    parameters: Parameters | None = None,
    defaults: Parameters | None = None,
) -> list[str]:
    """Names referenced by ``command`` that neither map provides."""
    merged = merge_parameters(parameters, defaults)
    return [name for name in extract_names(command) if name not in merged]

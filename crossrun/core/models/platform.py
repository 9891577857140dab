"""
Platform model — target platform tags and family compatibility.

An operation may declare the platform it is meant for. General tags
(``linux``, ``unix``) stand for a family of specific platforms; the
family only expands downward:

    operation "linux"  + target "fedora"  → included
    operation "fedora" + target "linux"   → excluded
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import StrEnum
from typing import Protocol, TypeVar


class Platform(StrEnum):
    """Deployment target platforms."""

    FEDORA = "fedora"
    MAC = "mac"
    UBUNTU = "ubuntu"
    DEBIAN = "debian"
    CENTOS = "centos"
    RHEL = "rhel"
    WINDOWS = "windows"
    LINUX = "linux"
    UNIX = "unix"


_LINUX_DISTROS = (
    Platform.FEDORA,
    Platform.UBUNTU,
    Platform.DEBIAN,
    Platform.CENTOS,
    Platform.RHEL,
)

_FAMILIES: dict[Platform, tuple[Platform, ...]] = {
    Platform.LINUX: _LINUX_DISTROS,
    Platform.UNIX: (*_LINUX_DISTROS, Platform.MAC),
}

_DISPLAY_NAMES: dict[Platform, str] = {
    Platform.FEDORA: "Fedora",
    Platform.UBUNTU: "Ubuntu",
    Platform.DEBIAN: "Debian",
    Platform.CENTOS: "CentOS",
    Platform.RHEL: "Red Hat Enterprise Linux",
    Platform.MAC: "macOS",
    Platform.WINDOWS: "Windows",
    Platform.LINUX: "Linux",
    Platform.UNIX: "Unix-like",
}


def platform_family(platform: Platform | str) -> tuple[Platform, ...]:
    """Specific platforms a tag generalises over.

    General tags expand to their members; every specific tag is a
    family of one.
    """
    platform = Platform(platform)
    return _FAMILIES.get(platform, (platform,))


def is_compatible(
    target: Platform | str,
    operation_platform: Platform | str | None = None,
) -> bool:
    """Whether an operation declared for ``operation_platform`` applies to ``target``.

    Args:
        target: The platform the run is executing against.
        operation_platform: The operation's declared platform, if any.

    Returns:
        True if the operation should be included.
    """
    if not operation_platform:
        return True
    target = Platform(target)
    operation_platform = Platform(operation_platform)
    if target == operation_platform:
        return True
    return target in platform_family(operation_platform)


def display_name(platform: Platform | str) -> str:
    """Human-readable platform name (e.g. ``rhel`` → "Red Hat Enterprise Linux")."""
    return _DISPLAY_NAMES[Platform(platform)]


class _HasPlatform(Protocol):
    @property
    def platform(self) -> Platform | None: ...


T = TypeVar("T", bound=_HasPlatform)


def filter_compatible(operations: Iterable[T], target: Platform | str) -> list[T]:
    """Keep the operations that apply to ``target``, in declaration order."""
    return [op for op in operations if is_compatible(target, op.platform)]

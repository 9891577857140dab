"""
Platform detection — work out which platform this host is.

Pure logic: the OS name and the ``/etc/os-release`` text can both be
injected, so detection is testable without touching the host. The
engine never calls this; the CLI resolves a platform and passes it in.
"""

from __future__ import annotations

import logging
import platform as _platform
from pathlib import Path

from crossrun.core.models.platform import Platform

logger = logging.getLogger(__name__)

OS_RELEASE_PATH = Path("/etc/os-release")

_DISTRO_IDS = {
    "fedora": Platform.FEDORA,
    "ubuntu": Platform.UBUNTU,
    "debian": Platform.DEBIAN,
    "centos": Platform.CENTOS,
    "rhel": Platform.RHEL,
}


def read_os_release(path: Path = OS_RELEASE_PATH) -> str | None:
    """Contents of the os-release file, or None when it can't be read."""
    try:
        return path.read_text(encoding="utf-8")
    except OSError:
        return None


def parse_os_release_id(text: str) -> str | None:
    """The ``ID=`` value of an os-release file, unquoted and lower-cased."""
    for line in text.splitlines():
        if line.startswith("ID="):
            return line.strip().split("=", 1)[1].strip("\"'").lower()
    return None


def detect_platform(system: str | None = None, os_release: str | None = None) -> Platform:
    """Map the host OS (and Linux distribution) to a Platform.

    Args:
        system: ``platform.system()`` style name. Read from the host if None.
        os_release: Text of ``/etc/os-release``. Read from the host if None
            and the system is Linux.

    Returns:
        A specific distro for known Linux ids, ``linux`` for other Linux
        hosts, ``mac`` for Darwin, ``windows`` for Windows, and ``unix``
        for anything else.
    """
    system = (system if system is not None else _platform.system()).lower()

    if system == "linux":
        if os_release is None:
            os_release = read_os_release()
        distro = parse_os_release_id(os_release) if os_release else None
        detected = _DISTRO_IDS.get(distro or "", Platform.LINUX)
        logger.debug("Detected Linux distro id=%s → %s", distro or "-", detected)
        return detected
    if system == "darwin":
        return Platform.MAC
    if system == "windows":
        return Platform.WINDOWS
    logger.debug("Unrecognised system '%s', assuming unix", system)
    return Platform.UNIX

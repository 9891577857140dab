"""
Step builders — construct common kinds of steps.

Each builder returns a plain ``Step``; the command is rendered once at
construction. Extra keyword options (``description``, ``platform``,
``timeout_ms``, ``max_retries``, ``continue_on_failure``) are passed
through to the step.
"""

from __future__ import annotations

import shlex
from collections.abc import Mapping, Sequence
from typing import Any, Literal

from crossrun.core.engine.parameters import ParamValue
from crossrun.core.models.operation import Routine, Step

PackageManager = Literal["dnf", "yum", "apt", "brew"]


def simple_step(id: str, name: str, command: str, **options: Any) -> Step:
    """A step that runs ``command`` verbatim."""
    return Step(id=id, name=name, command=command, **options)


def template_step(
    id: str,
    name: str,
    template: str,
    parameters: Mapping[str, ParamValue] | None = None,
    defaults: Mapping[str, ParamValue] | None = None,
    **options: Any,
) -> Step:
    """A step whose command is a ``${name}`` / ``$name`` template.

    The template is always validated, even with no parameters given.
    """
    return Step(
        id=id,
        name=name,
        command=template,
        parameters=dict(parameters or {}),
        defaults=dict(defaults or {}),
        **options,
    )


def shell_step(
    id: str,
    name: str,
    command: str,
    environment: Mapping[str, str] | None = None,
    **options: Any,
) -> Step:
    """A step that runs ``command`` with ``KEY=value`` assignments prefixed."""
    if environment:
        assignments = " ".join(f"{key}={value}" for key, value in environment.items())
        command = f"{assignments} {command}"
    return Step(id=id, name=name, command=command, **options)


def package_install_command(
    package: str,
    manager: PackageManager = "dnf",
    version: str | None = None,
) -> str:
    """Render the install command for one package."""
    suffix = f"=={version}" if version else ""
    if manager in ("dnf", "yum"):
        return f"sudo {manager} install -y {package}{suffix}"
    if manager == "apt":
        return f"sudo apt-get install -y {package}{suffix}"
    if manager == "brew":
        return f"brew install {package}{suffix}"
    raise ValueError(f"Unsupported package manager: {manager}")


def package_install_step(
    id: str,
    name: str,
    package: str,
    manager: PackageManager = "dnf",
    version: str | None = None,
    **options: Any,
) -> Step:
    """A step that installs a system package."""
    return Step(
        id=id,
        name=name,
        command=package_install_command(package, manager, version),
        **options,
    )


def docker_run_command(
    image: str,
    tag: str = "latest",
    *,
    container_name: str | None = None,
    port: str | int | None = None,
    environment: Mapping[str, str] | None = None,
    volumes: Sequence[str] = (),
    run_command: str | None = None,
) -> str:
    """Render a ``docker run`` command line."""
    parts = ["docker run"]
    if container_name:
        parts.append(f"--name {container_name}")
    if port:
        parts.append(f"-p {port}:{port}")
    for key, value in (environment or {}).items():
        parts.append(f"-e {key}={shlex.quote(str(value))}")
    for volume in volumes:
        parts.append(f"-v {volume}")
    parts.append(f"{image}:{tag}")
    if run_command:
        parts.append(run_command)
    return " ".join(parts)


def docker_step(
    id: str,
    name: str,
    image: str,
    tag: str = "latest",
    *,
    container_name: str | None = None,
    port: str | int | None = None,
    environment: Mapping[str, str] | None = None,
    volumes: Sequence[str] = (),
    run_command: str | None = None,
    **options: Any,
) -> Step:
    """A step that starts a container."""
    command = docker_run_command(
        image,
        tag,
        container_name=container_name,
        port=port,
        environment=environment,
        volumes=volumes,
        run_command=run_command,
    )
    return Step(id=id, name=name, command=command, **options)


def parallel_step(id: str, name: str, steps: Sequence[Step], **options: Any) -> Step:
    """A step that runs ``steps`` concurrently as one retryable unit."""
    if not steps:
        raise ValueError(f"Parallel step '{id}' needs at least one child step")
    return Step(id=id, name=name, children=tuple(steps), **options)


def routine_step(id: str, name: str, routine: Routine, **options: Any) -> Step:
    """A step executed in-process by calling ``routine``."""
    options.setdefault("command", f"in-process: {getattr(routine, '__name__', 'routine')}")
    return Step(id=id, name=name, routine=routine, **options)

"""Reading and writing docker-compose files."""

from __future__ import annotations

import logging
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from fargate.aws import OperationError

logger = logging.getLogger(__name__)

_INT_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


class _Mismatch(Exception):
    """The document does not fit the expected schema."""


def _parse_int(text: str) -> int:
    if not _INT_RE.fullmatch(text):
        raise ValueError(f'parsing "{text}": invalid syntax')
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ValueError(f'parsing "{text}": value out of range')
    return value


def _scalar_str(value: Any) -> str:
    if isinstance(value, (dict, list)):
        raise _Mismatch(f"expected a scalar, got {type(value).__name__}")
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _string_map(value: Any) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise _Mismatch("expected a mapping")
    return {_scalar_str(k): _scalar_str(v) for k, v in value.items()}


def _mapping(value: Any) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise _Mismatch("expected a mapping")
    return value


def _sequence(value: Any) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise _Mismatch("expected a sequence")
    return value


@dataclass
class Port:
    """A published port and the container port it maps to."""

    published_as_string: str = ""
    published_as_int: int = 0
    target: int = 0

    def _to_yaml(self) -> dict[str, Any]:
        return {
            "published": self.published_as_string,
            "publishedasint": self.published_as_int,
            "target": self.target,
        }


@dataclass
class Service:
    """A container in a compose file."""

    image: str = ""
    ports: list[Port] = field(default_factory=list)
    environment: dict[str, str] = field(default_factory=dict)
    secrets: dict[str, str] = field(default_factory=dict)
    labels: dict[str, str] = field(default_factory=dict)

    def _to_yaml(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.image:
            out["image"] = self.image
        if self.ports:
            out["ports"] = [p._to_yaml() for p in self.ports]
        if self.environment:
            out["environment"] = dict(sorted(self.environment.items()))
        if self.secrets:
            out["x-fargate-secrets"] = dict(sorted(self.secrets.items()))
        if self.labels:
            out["labels"] = dict(sorted(self.labels.items()))
        return out


@dataclass
class DockerCompose:
    """The services of a compose file."""

    services: dict[str, Service] = field(default_factory=dict)

    def _to_yaml(self) -> dict[str, Any]:
        return {
            "services": {
                name: svc._to_yaml() for name, svc in sorted(self.services.items())
            }
        }


def _parse_short(document: Any) -> dict[str, dict[str, Any]]:
    """Parse services whose ports use the "published:target" string form."""
    services: dict[str, dict[str, Any]] = {}
    doc = _mapping(document)
    _scalar_str(doc.get("version"))
    for name, raw in _mapping(doc.get("services")).items():
        svc = _mapping(raw)
        services[_scalar_str(name)] = {
            "image": _scalar_str(svc.get("image")),
            "ports": [_scalar_str(p) for p in _sequence(svc.get("ports"))],
            "environment": _string_map(svc.get("environment")),
            "secrets": _string_map(svc.get("x-fargate-secrets")),
            "labels": _string_map(svc.get("labels")),
        }
    return services


def _short_port(spec: str) -> Port:
    parts = spec.split(":")
    published = _parse_int(parts[0])
    if len(parts) < 2:
        raise ValueError(f'invalid port specification "{spec}"')
    target = _parse_int(parts[1].split("/")[0])
    return Port(published_as_string=parts[0], published_as_int=published, target=target)


def _long_port(raw: Any) -> Port:
    entry = _mapping(raw)
    published = _scalar_str(entry.get("published"))
    target = entry.get("target", 0)
    if target is None:
        target = 0
    if isinstance(target, bool) or not isinstance(target, int):
        raise _Mismatch("target must be an integer")
    try:
        published_int = _parse_int(published)
    except ValueError:
        published_int = 0
    return Port(published_as_string=published, published_as_int=published_int, target=target)


def _parse_long(document: Any) -> DockerCompose:
    services: dict[str, Service] = {}
    for name, raw in _mapping(_mapping(document).get("services")).items():
        svc = _mapping(raw)
        services[_scalar_str(name)] = Service(
            image=_scalar_str(svc.get("image")),
            ports=[_long_port(p) for p in _sequence(svc.get("ports"))],
            environment=_string_map(svc.get("environment")),
            secrets=_string_map(svc.get("x-fargate-secrets")),
            labels=_string_map(svc.get("labels")),
        )
    return DockerCompose(services=services)


def unmarshal_compose_yaml(yaml_bytes: bytes | str) -> DockerCompose:
    """Parse compose YAML written with either the short or the long port syntax.

    A malformed port in the short syntax raises ValueError; a document that
    fits neither syntax yields a compose description with no services.
    """
    try:
        document = yaml.safe_load(yaml_bytes)
    except yaml.YAMLError:
        return DockerCompose()

    try:
        short = _parse_short(document)
    except _Mismatch:
        try:
            return _parse_long(document)
        except _Mismatch:
            return DockerCompose()

    services = {
        name: Service(
            image=svc["image"],
            ports=[_short_port(p) for p in svc["ports"]],
            environment=svc["environment"],
            secrets=svc["secrets"],
            labels=svc["labels"],
        )
        for name, svc in short.items()
    }
    return DockerCompose(services=services)


@dataclass
class ComposeFile:
    """A docker-compose file on disk and its parsed contents."""

    file: str
    data: DockerCompose = field(default_factory=DockerCompose)

    def read(self) -> None:
        """Load the file through ``docker-compose config``, which renders all interpolations."""
        logger.debug("running docker-compose config [%s]", self.file)
        args = ["docker-compose", "-f", self.file, "config"]
        try:
            proc = subprocess.run(args, capture_output=True, check=False)
        except OSError as exc:
            raise OperationError("", exc) from exc

        stderr = proc.stderr.decode(errors="replace") if isinstance(proc.stderr, bytes) else (proc.stderr or "")
        if proc.returncode != 0:
            cause = subprocess.CalledProcessError(proc.returncode, args)
            raise OperationError(stderr, cause) from cause

        try:
            compose = unmarshal_compose_yaml(proc.stdout)
        except ValueError as exc:
            raise ValueError(f"unmarshalling docker compose yaml: {exc}") from exc
        if not compose.services:
            raise ValueError("unable to parse compose file, no services found")
        self.data = compose

    def add_service(self, name: str) -> Service:
        """Add an empty service under ``name`` and return it."""
        service = Service()
        self.data.services[name] = service
        return service

    def yaml(self) -> bytes:
        """Return the YAML for this compose file."""
        return yaml.safe_dump(
            self.data._to_yaml(), sort_keys=False, default_flow_style=False
        ).encode()

    def write(self) -> None:
        """Write the YAML to the file."""
        Path(self.file).write_bytes(self.yaml())


def read(file: str) -> ComposeFile:
    """Load a docker-compose file."""
    result = ComposeFile(file=file)
    result.read()
    return result


def new(file: str) -> ComposeFile:
    """Return an empty compose file bound to ``file``."""
    return ComposeFile(file=file, data=DockerCompose(services={}))
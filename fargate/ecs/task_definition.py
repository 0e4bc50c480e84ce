"""ECS task definitions: registering, describing and revising them."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

from fargate.aws import OperationError

logger = logging.getLogger(__name__)

LOG_STREAM_PREFIX = "fargate"

_INT_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


def _parse_int(text: str) -> int | None:
    """Parse a signed 64-bit decimal integer, or return None if it is not one."""
    if not _INT_RE.fullmatch(text):
        return None
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        return None
    return value


@dataclass
class EnvVar:
    """An environment variable of a container."""

    key: str = ""
    value: str = ""


@dataclass
class Secret:
    """A secret exposed to a container as an environment variable."""

    key: str = ""
    value_from: str = ""


def _convert_env_vars(env_vars: list[EnvVar]) -> list[dict[str, str]]:
    return [{"name": v.key, "value": v.value} for v in env_vars]


def _convert_secret_vars(secret_vars: list[Secret]) -> list[dict[str, str]]:
    return [{"name": s.key, "valueFrom": s.value_from} for s in secret_vars]


def _merge_by_name(current: list[dict], added: list[dict]) -> list[dict]:
    """Return ``added`` followed by the entries of ``current`` whose names it lacks."""
    names = {entry.get("name") for entry in added}
    return added + [entry for entry in current if entry.get("name") not in names]


@dataclass
class CreateTaskDefinitionInput:
    """Everything needed to register a new single-container task definition."""

    cpu: str = ""
    env_vars: list[EnvVar] = field(default_factory=list)
    execution_role_arn: str = ""
    image: str = ""
    memory: str = ""
    name: str = ""
    port: int = 0
    log_group_name: str = ""
    log_region: str = ""
    secret_vars: list[Secret] = field(default_factory=list)
    task_role: str = ""
    type: str = ""
    tags: list[dict[str, str]] = field(default_factory=list)

    def environment(self) -> list[dict[str, str]]:
        """Return the environment variables in API form."""
        return _convert_env_vars(self.env_vars)

    def secrets(self) -> list[dict[str, str]]:
        """Return the secrets in API form."""
        return _convert_secret_vars(self.secret_vars)


_REGISTER_FIELDS = (
    "containerDefinitions",
    "cpu",
    "executionRoleArn",
    "family",
    "memory",
    "networkMode",
    "requiresCompatibilities",
    "taskRoleArn",
    "volumes",
    "runtimePlatform",
)


class TaskDefinitionClient:
    """Task definition operations against an ECS cluster through a boto3-style client."""

    def __init__(self, svc: Any, cluster_name: str) -> None:
        self._svc = svc
        self.cluster_name = cluster_name
        self._task_definition_cache: dict[str, dict[str, Any]] = {}

    def create_task_definition(self, input: CreateTaskDefinitionInput) -> str:
        """Register a task definition built from ``input`` and return its ARN."""
        logger.debug("Creating ECS task definition")

        container: dict[str, Any] = {
            "essential": True,
            "image": input.image,
            "logConfiguration": {
                "logDriver": "awslogs",
                "options": {
                    "awslogs-region": input.log_region,
                    "awslogs-group": input.log_group_name,
                    "awslogs-stream-prefix": LOG_STREAM_PREFIX,
                },
            },
            "name": input.name,
        }
        environment = input.environment()
        if environment:
            container["environment"] = environment
        secrets = input.secrets()
        if secrets:
            container["secrets"] = secrets
        if input.port != 0:
            container["portMappings"] = [{"containerPort": input.port}]

        request: dict[str, Any] = {
            "containerDefinitions": [container],
            "cpu": input.cpu,
            "executionRoleArn": input.execution_role_arn,
            "family": f"{input.type}_{input.name}",
            "memory": input.memory,
            "networkMode": "awsvpc",
            "requiresCompatibilities": ["FARGATE"],
            "taskRoleArn": input.task_role,
        }
        if input.tags:
            request["tags"] = input.tags

        try:
            resp = self._svc.register_task_definition(**request)
        except Exception as exc:
            raise OperationError("Couldn't register ECS task definition", exc) from exc

        td = resp.get("taskDefinition") or {}
        logger.debug(
            "Created ECS task definition [%s:%d]", td.get("family") or "", td.get("revision") or 0
        )
        return td.get("taskDefinitionArn") or ""

    def describe_task_definition(self, task_definition_arn: str) -> dict[str, Any]:
        """Return a task definition and its tags, fetching it once and caching it."""
        cached = self._task_definition_cache.get(task_definition_arn)
        if cached is not None:
            return cached

        try:
            resp = self._svc.describe_task_definition(
                taskDefinition=task_definition_arn, include=["TAGS"]
            )
        except Exception as exc:
            raise OperationError("Could not describe ECS task definition", exc) from exc

        self._task_definition_cache[task_definition_arn] = resp
        return resp

    def _first_container(self, task_definition_arn: str) -> tuple[dict, dict]:
        dtd = self.describe_task_definition(task_definition_arn)
        return dtd, dtd["taskDefinition"]["containerDefinitions"][0]

    def update_task_definition_image(self, task_definition_arn: str, image: str) -> str:
        """Register a new revision with the container image replaced."""
        dtd, container = self._first_container(task_definition_arn)
        container["image"] = image
        return self._register_task_definition(dtd)

    def update_task_definition_image_and_env_vars(
        self,
        task_definition_arn_or_family: str,
        image: str,
        environment_variables: list[EnvVar],
        replace_vars: bool,
        secret_variables: list[Secret],
    ) -> str:
        """Register a new revision with a new image and added or replaced variables."""
        dtd, container = self._first_container(task_definition_arn_or_family)

        if image:
            container["image"] = image

        if environment_variables:
            env = _convert_env_vars(environment_variables)
            if replace_vars:
                container["environment"] = env
            else:
                container["environment"] = list(container.get("environment") or []) + env

        if secret_variables:
            secrets = _convert_secret_vars(secret_variables)
            if replace_vars:
                container["secrets"] = secrets
            else:
                container["secrets"] = list(container.get("secrets") or []) + secrets

        return self._register_task_definition(dtd)

    def _register_task_definition(self, dtd: dict[str, Any]) -> str:
        td = dtd.get("taskDefinition") or {}
        request = {name: td[name] for name in _REGISTER_FIELDS if td.get(name) is not None}
        tags = dtd.get("tags")
        if tags:
            request["tags"] = tags

        try:
            resp = self._svc.register_task_definition(**request)
        except Exception as exc:
            raise OperationError("Could not register ECS task definition", exc) from exc

        return (resp.get("taskDefinition") or {}).get("taskDefinitionArn") or ""

    def add_env_vars_to_task_definition(
        self, task_definition_arn: str, env_vars: list[EnvVar], secret_vars: list[Secret]
    ) -> str:
        """Register a new revision with variables added, overriding same-named ones."""
        dtd, container = self._first_container(task_definition_arn)

        if env_vars:
            container["environment"] = _merge_by_name(
                container.get("environment") or [], _convert_env_vars(env_vars)
            )
        if secret_vars:
            container["secrets"] = _merge_by_name(
                container.get("secrets") or [], _convert_secret_vars(secret_vars)
            )

        return self._register_task_definition(dtd)

    def remove_env_vars_from_task_definition(
        self, task_definition_arn: str, keys: list[str]
    ) -> str:
        """Register a new revision without the variables and secrets named by ``keys``."""
        dtd, container = self._first_container(task_definition_arn)
        removed = set(keys)

        container["environment"] = [
            e for e in container.get("environment") or [] if e.get("name") not in removed
        ]
        container["secrets"] = [
            s for s in container.get("secrets") or [] if s.get("name") not in removed
        ]

        return self._register_task_definition(dtd)

    def get_env_vars_from_task_definition(self, task_definition_arn: str) -> list[EnvVar]:
        """Return the environment variables of the first container."""
        _, container = self._first_container(task_definition_arn)
        return [
            EnvVar(key=e.get("name") or "", value=e.get("value") or "")
            for e in container.get("environment") or []
        ]

    def get_secret_vars_from_task_definition(self, task_definition_arn: str) -> list[EnvVar]:
        """Return the secrets of the first container as key and source pairs."""
        _, container = self._first_container(task_definition_arn)
        return [
            EnvVar(key=s.get("name") or "", value=s.get("valueFrom") or "")
            for s in container.get("secrets") or []
        ]

    def update_task_definition_cpu_and_memory(
        self, task_definition_arn: str, cpu: str, memory: str
    ) -> str:
        """Register a new revision with the given CPU and memory, where set."""
        dtd = self.describe_task_definition(task_definition_arn)
        td = dtd["taskDefinition"]
        if cpu:
            td["cpu"] = cpu
        if memory:
            td["memory"] = memory
        return self._register_task_definition(dtd)

    def get_cpu_and_memory_from_task_definition(
        self, task_definition_arn: str
    ) -> tuple[str, str]:
        """Return the CPU and memory of a task definition."""
        td = self.describe_task_definition(task_definition_arn)["taskDefinition"]
        return td.get("cpu") or "", td.get("memory") or ""


def get_revision_number(task_definition_arn: str) -> str:
    """Return the revision number at the end of a task definition ARN."""
    return task_definition_arn.split(":")[-1]


def get_task_definition_arn(region: str, account: str, family: str, revision_number: str) -> str:
    """Build a task definition ARN."""
    return f"arn:aws:ecs:{region}:{account}:task-definition/{family}:{revision_number}"


def get_task_family(task_definition_arn: str) -> str:
    """Return the family named in a task definition ARN."""
    return task_definition_arn.split(":")[-2].removeprefix("task-definition/")


def resolve_revision_number(task_definition_arn: str, revision_expression: str) -> str:
    """Resolve an absolute revision or a "+n"/"-n" delta against the ARN's revision.

    Returns "" when the ARN's revision or the expression is invalid, or the
    result is not positive.
    """
    current_revision = get_revision_number(task_definition_arn)
    current_number = _parse_int(current_revision)
    if current_number is None:
        return ""

    if revision_expression == "":
        return current_revision

    sign = revision_expression[0]
    if sign not in "+-":
        if _parse_int(revision_expression) is None:
            return ""
        return revision_expression

    next_number = 0
    delta = _parse_int(revision_expression[1:])
    if delta is not None:
        next_number = current_number + delta if sign == "+" else current_number - delta

    if next_number <= 0:
        return ""
    return str(next_number)


def sort_env_vars(env_vars: list[EnvVar]) -> list[EnvVar]:
    """Sort environment variables by key in place and return them."""
    env_vars.sort(key=lambda v: v.key)
    return env_vars
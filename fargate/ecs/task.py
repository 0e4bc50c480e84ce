"""ECS tasks: running, listing, describing and stopping them."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from fargate.aws import OperationError
from fargate.ecs.task_definition import EnvVar, TaskDefinitionClient, get_revision_number

DETAIL_NETWORK_INTERFACE_ID = "networkInterfaceId"
DETAIL_SUBNET_ID = "subnetId"
STARTED_BY_PREFIX = "fargate:"
ENI_ATTACHMENT_TYPE = "ElasticNetworkInterface"

_TASK_GROUP_STARTED_BY_RE = re.compile(r"fargate:(.*)")

ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


def _started_by(name: str) -> str:
    return f"{STARTED_BY_PREFIX}{name}"


@dataclass
class Task:
    """A running or stopped ECS task."""

    cpu: str = ""
    created_at: datetime = ZERO_TIME
    deployment_id: str = ""
    desired_status: str = ""
    eni_id: str = ""
    env_vars: list[EnvVar] = field(default_factory=list)
    image: str = ""
    last_status: str = ""
    memory: str = ""
    security_group_ids: list[str] = field(default_factory=list)
    started_by: str = ""
    subnet_id: str = ""
    task_id: str = ""
    task_role: str = ""

    def running_for(self) -> timedelta:
        """Return how long the task has existed, truncated to whole seconds."""
        now = datetime.now(self.created_at.tzinfo)
        elapsed = now - self.created_at
        return timedelta(seconds=int(elapsed.total_seconds()))


@dataclass
class TaskGroup:
    """Tasks started together under one name."""

    task_group_name: str = ""
    instances: int = 0


@dataclass
class RunTaskInput:
    """Parameters for starting a group of tasks."""

    cluster_name: str = ""
    count: int = 0
    security_group_ids: list[str] = field(default_factory=list)
    subnet_ids: list[str] = field(default_factory=list)
    task_definition_arn: str = ""
    task_name: str = ""


def determine_eni_details(task: dict[str, Any]) -> tuple[bool, str, str]:
    """Find the network interface and subnet of a task's ENI attachment.

    Returns whether an ENI attachment was found, its interface ID and subnet ID.
    """
    found = False
    eni_id = ""
    subnet_id = ""
    for attachment in task.get("attachments") or []:
        if attachment.get("type") != ENI_ATTACHMENT_TYPE:
            continue
        found = True
        for detail in attachment.get("details") or []:
            name = detail.get("name")
            if name == DETAIL_NETWORK_INTERFACE_ID:
                eni_id = detail.get("value") or ""
            elif name == DETAIL_SUBNET_ID:
                subnet_id = detail.get("value") or ""
    return found, eni_id, subnet_id


class TaskClient(TaskDefinitionClient):
    """Task operations against an ECS cluster through a boto3-style client."""

    def run_task(self, input: RunTaskInput) -> None:
        """Start ``input.count`` tasks from a task definition."""
        try:
            self._svc.run_task(
                cluster=input.cluster_name,
                count=input.count,
                taskDefinition=input.task_definition_arn,
                launchType="FARGATE",
                startedBy=_started_by(input.task_name),
                networkConfiguration={
                    "awsvpcConfiguration": {
                        "assignPublicIp": "ENABLED",
                        "subnets": list(input.subnet_ids),
                        "securityGroups": list(input.security_group_ids),
                    }
                },
            )
        except Exception as exc:
            raise OperationError("Could not run ECS task", exc) from exc

    def describe_tasks_for_service(self, service_name: str) -> list[Task]:
        """Return the tasks of a service."""
        return self._list_tasks(
            cluster=self.cluster_name, launchType="FARGATE", serviceName=service_name
        )

    def describe_tasks_for_task_group(self, task_group_name: str) -> list[Task]:
        """Return the tasks started under a task group name."""
        return self._list_tasks(
            startedBy=_started_by(task_group_name), cluster=self.cluster_name
        )

    def list_task_groups(self) -> list[TaskGroup]:
        """Return the task groups in the cluster with their instance counts."""
        groups: dict[str, TaskGroup] = {}
        for task in self._list_tasks(cluster=self.cluster_name):
            match = _TASK_GROUP_STARTED_BY_RE.search(task.started_by)
            if match is None:
                continue
            name = match.group(1)
            group = groups.get(name)
            if group is None:
                groups[name] = TaskGroup(task_group_name=name, instances=1)
            else:
                group.instances += 1
        return list(groups.values())

    def stop_tasks(self, task_ids: list[str]) -> None:
        """Stop each of the given tasks."""
        for task_id in task_ids:
            self.stop_task(task_id)

    def stop_task(self, task_id: str) -> None:
        """Stop a task."""
        try:
            self._svc.stop_task(cluster=self.cluster_name, task=task_id)
        except Exception as exc:
            raise OperationError("Could not stop ECS task", exc) from exc

    def _list_tasks(self, **request: Any) -> list[Task]:
        batches: list[list[str]] = []
        kwargs = dict(request)
        while True:
            try:
                resp = self._svc.list_tasks(**kwargs)
            except Exception as exc:
                raise OperationError("Could not list ECS tasks", exc) from exc
            arns = resp.get("taskArns") or []
            if arns:
                batches.append(list(arns))
            token = resp.get("nextToken")
            if not token:
                break
            kwargs["nextToken"] = token
        return [task for batch in batches for task in self.describe_tasks(batch)]

    def describe_tasks(self, task_ids: list[str]) -> list[Task]:
        """Describe the given tasks."""
        if not task_ids:
            return []

        try:
            resp = self._svc.describe_tasks(cluster=self.cluster_name, tasks=list(task_ids))
        except Exception as exc:
            raise OperationError("Could not describe ECS tasks", exc) from exc

        tasks: list[Task] = []
        for raw in resp.get("tasks") or []:
            task_definition_arn = raw.get("taskDefinitionArn") or ""
            task = Task(
                cpu=raw.get("cpu") or "",
                created_at=raw.get("createdAt") or ZERO_TIME,
                deployment_id=get_revision_number(task_definition_arn),
                desired_status=raw.get("desiredStatus") or "",
                last_status=raw.get("lastStatus") or "",
                memory=raw.get("memory") or "",
                task_id=(raw.get("taskArn") or "").split("/")[-1],
                started_by=raw.get("startedBy") or "",
            )

            td = self.describe_task_definition(task_definition_arn)["taskDefinition"]
            container = td["containerDefinitions"][0]
            task.image = container.get("image") or ""
            task.task_role = td.get("taskRoleArn") or ""
            task.env_vars = [
                EnvVar(key=e.get("name") or "", value=e.get("value") or "")
                for e in container.get("environment") or []
            ]

            found, eni_id, subnet_id = determine_eni_details(raw)
            if found:
                task.eni_id = eni_id
                task.subnet_id = subnet_id

            tasks.append(task)
        return tasks
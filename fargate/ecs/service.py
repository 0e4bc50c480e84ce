"""ECS clusters and services."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from fargate.aws import OperationError
from fargate.ecs.task import ZERO_TIME, TaskClient
from fargate.ecs.task_definition import EnvVar, get_revision_number

logger = logging.getLogger(__name__)


def _error_code(exc: BaseException) -> str | None:
    code = getattr(exc, "code", None)
    if code is None:
        response = getattr(exc, "response", None)
        if isinstance(response, dict):
            code = (response.get("Error") or {}).get("Code")
    return code


@dataclass
class CreateServiceInput:
    """Parameters for creating a service."""

    cluster: str = ""
    desired_count: int = 0
    name: str = ""
    port: int = 0
    security_group_ids: list[str] = field(default_factory=list)
    subnet_ids: list[str] = field(default_factory=list)
    target_group_arn: str = ""
    task_definition_arn: str = ""


@dataclass
class ServiceRegistry:
    """A service discovery registry attached to a service."""

    container_name: str = ""
    container_port: int = 0
    port: int = 0
    registry_arn: str = ""


@dataclass
class Event:
    """A service event."""

    created_at: datetime = ZERO_TIME
    message: str = ""


@dataclass
class Deployment:
    """A deployment of a service."""

    created_at: datetime = ZERO_TIME
    desired_count: int = 0
    id: str = ""
    image: str = ""
    pending_count: int = 0
    running_count: int = 0
    status: str = ""


@dataclass
class Service:
    """An ECS service and the details of its task definition."""

    cluster: str = ""
    cpu: str = ""
    deployments: list[Deployment] = field(default_factory=list)
    desired_count: int = 0
    env_vars: list[EnvVar] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)
    image: str = ""
    memory: str = ""
    name: str = ""
    pending_count: int = 0
    running_count: int = 0
    security_group_ids: list[str] = field(default_factory=list)
    service_registries: list[ServiceRegistry] = field(default_factory=list)
    target_group_arn: str = ""
    task_definition_arn: str = ""
    task_role: str = ""
    secret_vars: list[EnvVar] = field(default_factory=list)
    subnet_ids: list[str] = field(default_factory=list)
    status: str = ""

    def add_event(self, event: Event) -> None:
        self.events.append(event)

    def add_deployment(self, deployment: Deployment) -> None:
        self.deployments.append(deployment)


class ECS(TaskClient):
    """Cluster, service, task and task definition operations on one ECS cluster."""

    def create_cluster(self) -> str:
        """Create the cluster and return its ARN."""
        resp = self._svc.create_cluster(clusterName=self.cluster_name)
        return (resp.get("cluster") or {}).get("clusterArn") or ""

    def create_service(self, input: CreateServiceInput) -> None:
        """Create a Fargate service, behind a target group if one is given."""
        logger.debug("Creating ECS service")

        request: dict[str, Any] = {
            "cluster": input.cluster,
            "desiredCount": input.desired_count,
            "serviceName": input.name,
            "taskDefinition": input.task_definition_arn,
            "launchType": "FARGATE",
            "networkConfiguration": {
                "awsvpcConfiguration": {
                    "assignPublicIp": "ENABLED",
                    "subnets": list(input.subnet_ids),
                    "securityGroups": list(input.security_group_ids),
                }
            },
        }
        if input.target_group_arn and input.port > 0:
            request["loadBalancers"] = [
                {
                    "targetGroupArn": input.target_group_arn,
                    "containerPort": input.port,
                    "containerName": input.name,
                }
            ]

        try:
            self._svc.create_service(**request)
        except Exception as exc:
            raise OperationError("Couldn't create ECS service", exc) from exc

        logger.debug("Created ECS service [%s]", input.name)

    def describe_service(self, service_name: str) -> Service:
        """Describe one service."""
        services = self.describe_services([service_name])
        if not services:
            raise OperationError(
                "Could not describe ECS service", LookupError(f"Could not find {service_name}")
            )
        return services[0]

    def get_desired_count(self, service_name: str) -> int:
        return self.describe_service(service_name).desired_count

    def set_desired_count(self, service_name: str, desired_count: int) -> None:
        """Scale a service to ``desired_count`` tasks."""
        try:
            self._svc.update_service(
                cluster=self.cluster_name, service=service_name, desiredCount=desired_count
            )
        except Exception as exc:
            raise OperationError("Could not scale ECS service", exc) from exc

    def destroy_service(self, service_name: str) -> None:
        try:
            self._svc.delete_service(cluster=self.cluster_name, service=service_name)
        except Exception as exc:
            raise OperationError("Could not destroy ECS service", exc) from exc

    def list_services(self) -> list[Service]:
        """Return every Fargate service in the cluster."""
        batches: list[list[str]] = []
        kwargs: dict[str, Any] = {"cluster": self.cluster_name, "launchType": "FARGATE"}
        while True:
            try:
                resp = self._svc.list_services(**kwargs)
            except Exception as exc:
                raise OperationError("Could not list ECS services", exc) from exc
            arns = resp.get("serviceArns") or []
            if arns:
                batches.append(list(arns))
            token = resp.get("nextToken")
            if not token:
                break
            kwargs["nextToken"] = token
        return [service for batch in batches for service in self.describe_services(batch)]

    def describe_services(self, service_arns: list[str]) -> list[Service]:
        """Describe the given services with their task definition details."""
        try:
            resp = self._svc.describe_services(
                cluster=self.cluster_name, services=list(service_arns)
            )
        except Exception as exc:
            raise OperationError("Could not describe ECS services", exc) from exc

        return [self._to_service(raw) for raw in resp.get("services") or []]

    def _to_service(self, raw: dict[str, Any]) -> Service:
        config = (raw.get("networkConfiguration") or {}).get("awsvpcConfiguration") or {}
        task_definition_arn = raw.get("taskDefinition") or ""

        service = Service(
            desired_count=raw.get("desiredCount") or 0,
            name=raw.get("serviceName") or "",
            pending_count=raw.get("pendingCount") or 0,
            running_count=raw.get("runningCount") or 0,
            security_group_ids=list(config.get("securityGroups") or []),
            status=raw.get("status") or "",
            subnet_ids=list(config.get("subnets") or []),
            task_definition_arn=task_definition_arn,
        )

        td = self.describe_task_definition(task_definition_arn)["taskDefinition"]
        service.cpu = td.get("cpu") or ""
        service.memory = td.get("memory") or ""
        service.task_role = td.get("taskRoleArn") or ""

        load_balancers = raw.get("loadBalancers") or []
        if load_balancers:
            service.target_group_arn = load_balancers[0].get("targetGroupArn") or ""

        service.service_registries = [
            ServiceRegistry(
                container_name=reg.get("containerName") or "",
                container_port=reg.get("containerPort") or 0,
                port=reg.get("port") or 0,
                registry_arn=reg.get("registryArn") or "",
            )
            for reg in raw.get("serviceRegistries") or []
        ]

        containers = td.get("containerDefinitions") or []
        if containers:
            container = containers[0]
            service.image = container.get("image") or ""
            service.env_vars = [
                EnvVar(key=e.get("name") or "", value=e.get("value") or "")
                for e in container.get("environment") or []
            ]
            service.secret_vars = [
                EnvVar(key=s.get("name") or "", value=s.get("valueFrom") or "")
                for s in container.get("secrets") or []
            ]

        for event in raw.get("events") or []:
            service.add_event(
                Event(
                    created_at=event.get("createdAt") or ZERO_TIME,
                    message=event.get("message") or "",
                )
            )

        for d in raw.get("deployments") or []:
            deployment_arn = d.get("taskDefinition") or ""
            deployment_td = self.describe_task_definition(deployment_arn)["taskDefinition"]
            service.add_deployment(
                Deployment(
                    status=d.get("status") or "",
                    desired_count=d.get("desiredCount") or 0,
                    pending_count=d.get("pendingCount") or 0,
                    running_count=d.get("runningCount") or 0,
                    created_at=d.get("createdAt") or ZERO_TIME,
                    id=get_revision_number(deployment_arn),
                    image=deployment_td["containerDefinitions"][0].get("image") or "",
                )
            )

        return service

    def update_service_task_definition(self, service_name: str, task_definition_arn: str) -> None:
        try:
            self._svc.update_service(
                cluster=self.cluster_name,
                service=service_name,
                taskDefinition=task_definition_arn,
            )
        except Exception as exc:
            raise OperationError("Could not update ECS service task definition", exc) from exc

    def restart_service(self, service_name: str) -> None:
        """Force a new deployment of a service."""
        try:
            self._svc.update_service(
                cluster=self.cluster_name, service=service_name, forceNewDeployment=True
            )
        except Exception as exc:
            if _error_code(exc) == "ServiceNotFoundException":
                raise OperationError(f"Service {service_name} not found") from exc
            raise OperationError("Could not restart service", exc) from exc

    def wait_until_service_stable(self, service_name: str) -> None:
        """Block until the service reaches a steady state."""
        try:
            self._svc.get_waiter("services_stable").wait(
                cluster=self.cluster_name, services=[service_name]
            )
        except Exception as exc:
            raise OperationError(
                "Could not wait for ECS service to reach a steady state", exc
            ) from exc
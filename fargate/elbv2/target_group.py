"""Elastic Load Balancing (v2) target groups."""

from __future__ import annotations

import logging
from contextlib import suppress
from dataclasses import dataclass
from typing import Any

from fargate.aws import OperationError

logger = logging.getLogger(__name__)

TARGET_TYPE_IP = "ip"


@dataclass
class TargetGroup:
    """A target group and the load balancer it is attached to, if any."""

    name: str = ""
    arn: str = ""
    load_balancer_arn: str = ""


@dataclass
class CreateTargetGroupParameters:
    """Parameters for creating a target group."""

    name: str = ""
    port: int = 0
    protocol: str = ""
    vpc_id: str = ""


class TargetGroupOperations:
    """Target group operations through a boto3-style ELBv2 client."""

    def __init__(self, client: Any) -> None:
        self._client = client

    def create_target_group(self, params: CreateTargetGroupParameters) -> str:
        """Create an IP target group and return its ARN.

        Errors from the client propagate unchanged.
        """
        resp = self._client.create_target_group(
            Name=params.name,
            Port=params.port,
            Protocol=params.protocol,
            TargetType=TARGET_TYPE_IP,
            VpcId=params.vpc_id,
        )
        return resp["TargetGroups"][0].get("TargetGroupArn") or ""

    def delete_target_group(self, target_group_name: str) -> None:
        """Delete a target group by name; a failed deletion is ignored."""
        logger.debug("Deleting ELB target group")
        target_group = self._describe_target_group(
            Names=[target_group_name]
        )
        with suppress(Exception):
            self._client.delete_target_group(
                TargetGroupArn=target_group.get("TargetGroupArn")
            )

    def delete_target_group_by_arn(self, target_group_arn: str) -> None:
        """Delete a target group by ARN."""
        try:
            self._client.delete_target_group(TargetGroupArn=target_group_arn)
        except Exception as exc:
            raise OperationError("Could not delete ELB target group", exc) from exc

    def get_target_group_arn(self, target_group_name: str) -> str:
        """Return the ARN of the named target group, or "" if it is not found."""
        try:
            resp = self._client.describe_target_groups(Names=[target_group_name])
        except Exception:
            return ""
        groups = resp.get("TargetGroups") or []
        if len(groups) == 1:
            return groups[0].get("TargetGroupArn") or ""
        return ""

    def get_target_group_load_balancer_arn(self, target_group_arn: str) -> str:
        """Return the ARN of the first load balancer using a target group, or ""."""
        target_group = self._describe_target_group(TargetGroupArns=[target_group_arn])
        arns = target_group.get("LoadBalancerArns") or []
        return arns[0] if arns else ""

    def describe_target_groups(self, target_group_arns: list[str]) -> list[TargetGroup]:
        """Describe the given target groups."""
        try:
            resp = self._client.describe_target_groups(
                TargetGroupArns=list(target_group_arns)
            )
        except Exception as exc:
            raise OperationError("Could not describe ELB target groups", exc) from exc

        result: list[TargetGroup] = []
        for raw in resp.get("TargetGroups") or []:
            lb_arns = raw.get("LoadBalancerArns") or []
            result.append(
                TargetGroup(
                    name=raw.get("TargetGroupName") or "",
                    arn=raw.get("TargetGroupArn") or "",
                    load_balancer_arn=lb_arns[0] if lb_arns else "",
                )
            )
        return result

    def _describe_target_group(self, **request: Any) -> dict[str, Any]:
        try:
            resp = self._client.describe_target_groups(**request)
        except Exception as exc:
            raise OperationError("Could not describe ELB target groups", exc) from exc
        groups = resp.get("TargetGroups") or []
        if len(groups) != 1:
            raise OperationError("Could not describe ELB target groups")
        return groups[0]
"""Elastic Load Balancing (v2) load balancers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from fargate.aws import OperationError

LOAD_BALANCER_TYPE_APPLICATION = "application"


@dataclass
class LoadBalancer:
    """A load balancer and its network placement."""

    arn: str = ""
    dns_name: str = ""
    hosted_zone_id: str = ""
    listeners: list = field(default_factory=list)
    name: str = ""
    security_group_ids: list[str] = field(default_factory=list)
    status: str = ""
    subnet_ids: list[str] = field(default_factory=list)
    type: str = ""
    vpc_id: str = ""


@dataclass
class CreateLoadBalancerParameters:
    """Parameters for creating a load balancer."""

    name: str = ""
    security_group_ids: list[str] = field(default_factory=list)
    subnet_ids: list[str] = field(default_factory=list)
    type: str = ""


def _to_load_balancer(raw: dict[str, Any]) -> LoadBalancer:
    return LoadBalancer(
        arn=raw.get("LoadBalancerArn") or "",
        dns_name=raw.get("DNSName") or "",
        hosted_zone_id=raw.get("CanonicalHostedZoneId") or "",
        vpc_id=raw.get("VpcId") or "",
        name=raw.get("LoadBalancerName") or "",
        security_group_ids=list(raw.get("SecurityGroups") or []),
        status=(raw.get("State") or {}).get("Code") or "",
        subnet_ids=[az.get("SubnetId") or "" for az in raw.get("AvailabilityZones") or []],
        type=raw.get("Type") or "",
    )


class LoadBalancerOperations:
    """Load balancer operations through a boto3-style ELBv2 client."""

    def __init__(self, client: Any) -> None:
        self._client = client

    def create_load_balancer(self, params: CreateLoadBalancerParameters) -> str:
        """Create a load balancer and return its ARN.

        Security groups apply only to application load balancers. Errors from
        the client propagate unchanged.
        """
        request: dict[str, Any] = {
            "Name": params.name,
            "Subnets": list(params.subnet_ids),
            "Type": params.type,
        }
        if params.type == LOAD_BALANCER_TYPE_APPLICATION:
            request["SecurityGroups"] = list(params.security_group_ids)

        resp = self._client.create_load_balancer(**request)
        return resp["LoadBalancers"][0].get("LoadBalancerArn") or ""

    def describe_load_balancers(self) -> list[LoadBalancer]:
        """Return all load balancers."""
        return self._describe_load_balancers()

    def describe_load_balancers_by_name(self, lb_names: list[str]) -> list[LoadBalancer]:
        """Return the load balancers with the given names."""
        return self._describe_load_balancers(Names=list(lb_names))

    def describe_load_balancers_by_arn(self, lb_arns: list[str]) -> list[LoadBalancer]:
        """Return the load balancers with the given ARNs."""
        return self._describe_load_balancers(LoadBalancerArns=list(lb_arns))

    def describe_load_balancer(self, lb_name: str) -> LoadBalancer:
        """Return the named load balancer."""
        return self._describe_one(self.describe_load_balancers_by_name, lb_name)

    def describe_load_balancer_by_arn(self, lb_arn: str) -> LoadBalancer:
        """Return the load balancer with the given ARN."""
        return self._describe_one(self.describe_load_balancers_by_arn, lb_arn)

    def delete_load_balancer(self, lb_name: str) -> None:
        """Delete the named load balancer."""
        load_balancer = self.describe_load_balancer(lb_name)
        try:
            self._client.delete_load_balancer(LoadBalancerArn=load_balancer.arn)
        except Exception as exc:
            raise OperationError("Could not destroy ELB load balancer", exc) from exc

    @staticmethod
    def _describe_one(lookup: Any, key: str) -> LoadBalancer:
        try:
            found = lookup([key])
        except Exception:
            found = []
        if not found:
            raise OperationError(
                "Could not find ELB load balancer", LookupError(f"{key} not found")
            )
        return found[0]

    def _describe_load_balancers(self, **request: Any) -> list[LoadBalancer]:
        load_balancers: list[LoadBalancer] = []
        kwargs = dict(request)
        while True:
            resp = self._client.describe_load_balancers(**kwargs)
            load_balancers.extend(
                _to_load_balancer(raw) for raw in resp.get("LoadBalancers") or []
            )
            marker = resp.get("NextMarker")
            if not marker:
                break
            kwargs["Marker"] = marker
        return load_balancers
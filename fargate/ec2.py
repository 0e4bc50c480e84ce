"""EC2 networking helpers: subnets, security groups and network interfaces."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from fargate.aws import OperationError

DEFAULT_SECURITY_GROUP_NAME = "fargate-default"
DEFAULT_SECURITY_GROUP_DESCRIPTION = "Default Fargate CLI SG"
DEFAULT_SECURITY_GROUP_INGRESS_CIDR = "0.0.0.0/0"
DEFAULT_SECURITY_GROUP_INGRESS_PROTOCOL = "-1"


@dataclass
class Eni:
    """An elastic network interface with a public address."""

    public_ip_address: str = ""
    eni_id: str = ""
    security_group_ids: list[str] = field(default_factory=list)


class SDKClient:
    """Access to EC2 through a boto3-style client."""

    def __init__(self, client: Any) -> None:
        self._client = client

    def describe_network_interfaces(self, eni_ids: list[str]) -> dict[str, Eni]:
        """Return the interfaces that have a public association, keyed by ID."""
        try:
            resp = self._client.describe_network_interfaces(NetworkInterfaceIds=list(eni_ids))
        except Exception as exc:
            raise OperationError("Could not describe network interfaces", exc) from exc

        enis: dict[str, Eni] = {}
        for iface in resp.get("NetworkInterfaces") or []:
            association = iface.get("Association")
            if association is None:
                continue
            eni = Eni(
                eni_id=iface.get("NetworkInterfaceId") or "",
                public_ip_address=association.get("PublicIp") or "",
                security_group_ids=[g.get("GroupId") or "" for g in iface.get("Groups") or []],
            )
            enis[eni.eni_id] = eni
        return enis

    def get_default_subnet_ids(self) -> list[str]:
        """Return the IDs of the subnets that are default for their zone."""
        try:
            resp = self._client.describe_subnets(
                Filters=[{"Name": "default-for-az", "Values": ["true"]}]
            )
        except Exception as exc:
            raise OperationError("could not retrieve default subnet IDs", exc) from exc
        return [s.get("SubnetId") or "" for s in resp.get("Subnets") or []]

    def get_default_security_group_id(self) -> str:
        """Return the ID of the default security group, or "" if it does not exist."""
        failure = (
            f"could not retrieve default security group ID ({DEFAULT_SECURITY_GROUP_NAME})"
        )
        try:
            resp = self._client.describe_security_groups(
                GroupNames=[DEFAULT_SECURITY_GROUP_NAME]
            )
        except Exception as exc:
            if getattr(exc, "code", None) == "InvalidGroup.NotFound":
                return ""
            raise OperationError(failure, exc) from exc

        groups = resp.get("SecurityGroups") or []
        if not groups:
            raise OperationError(failure, None)
        return groups[0].get("GroupId") or ""

    def get_subnet_vpc_id(self, subnet_id: str) -> str:
        """Return the VPC ID of a subnet."""
        try:
            resp = self._client.describe_subnets(SubnetIds=[subnet_id])
        except Exception as exc:
            raise OperationError(
                f"could not find VPC ID for subnet ID {subnet_id}", exc
            ) from exc

        subnets = resp.get("Subnets") or []
        if not subnets:
            raise OperationError(
                f"could not find VPC ID: subnet ID {subnet_id} not found", None
            )
        return subnets[0].get("VpcId") or ""

    def create_default_security_group(self) -> str:
        """Create the default security group and return its ID."""
        try:
            resp = self._client.create_security_group(
                GroupName=DEFAULT_SECURITY_GROUP_NAME,
                Description=DEFAULT_SECURITY_GROUP_DESCRIPTION,
            )
        except Exception as exc:
            raise OperationError(
                f"could not create default security group ({DEFAULT_SECURITY_GROUP_NAME})",
                exc,
            ) from exc
        return resp.get("GroupId") or ""

    def authorize_all_security_group_ingress(self, group_id: str) -> None:
        """Allow all ingress traffic into a security group."""
        self._client.authorize_security_group_ingress(
            CidrIp=DEFAULT_SECURITY_GROUP_INGRESS_CIDR,
            GroupId=group_id,
            IpProtocol=DEFAULT_SECURITY_GROUP_INGRESS_PROTOCOL,
        )
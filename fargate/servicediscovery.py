"""Cloud Map service discovery namespaces and services."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from fargate.aws import OperationError

NAMESPACE_TYPE_DNS_PRIVATE = "DNS_PRIVATE"


@dataclass
class Namespace:
    """A service discovery namespace."""

    id: str = ""
    name: str = ""
    private: bool = False


@dataclass
class DnsRecord:
    """A DNS record template of a service."""

    ttl: int = 0
    type: str = ""


@dataclass
class Service:
    """A service discovery service and its namespace."""

    id: str = ""
    dns_records: list[DnsRecord] = field(default_factory=list)
    name: str = ""
    namespace: Namespace = field(default_factory=Namespace)


class ServiceDiscovery:
    """Service discovery lookups through a boto3-style client."""

    def __init__(self, svc: Any) -> None:
        self._svc = svc

    def get_namespace(self, namespace_id: str) -> Namespace:
        """Describe a namespace."""
        try:
            resp = self._svc.get_namespace(Id=namespace_id)
        except Exception as exc:
            raise OperationError("Could not describe ServiceDiscovery namespace", exc) from exc

        raw = resp.get("Namespace") or {}
        return Namespace(
            id=namespace_id,
            name=raw.get("Name") or "",
            private=raw.get("Type") == NAMESPACE_TYPE_DNS_PRIVATE,
        )

    def get_service(self, registry_arn: str) -> Service:
        """Describe the service identified by a registry ARN."""
        service_id = registry_arn.split("/")[-1]
        try:
            resp = self._svc.get_service(Id=service_id)
        except Exception as exc:
            raise OperationError("Could not describe ServiceDiscovery service", exc) from exc

        raw = resp.get("Service") or {}
        dns_config = raw.get("DnsConfig") or {}
        namespace = self.get_namespace(dns_config.get("NamespaceId") or "")
        return Service(
            id=service_id,
            name=raw.get("Name") or "",
            namespace=namespace,
            dns_records=[
                DnsRecord(ttl=r.get("TTL") or 0, type=r.get("Type") or "")
                for r in dns_config.get("DnsRecords") or []
            ],
        )
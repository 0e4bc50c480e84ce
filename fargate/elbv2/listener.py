"""Elastic Load Balancing (v2) listeners and their routing rules."""

from __future__ import annotations

import logging
import re
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any

from fargate.aws import OperationError
from fargate.elbv2.load_balancer import LoadBalancerOperations
from fargate.elbv2.target_group import TargetGroupOperations

logger = logging.getLogger(__name__)

ACTION_TYPE_FORWARD = "forward"
_INT_RE = re.compile(r"[+-]?[0-9]+")


def _atoi(text: str | None) -> int:
    """Parse a decimal integer, yielding 0 when the text is not one."""
    if text is None or not _INT_RE.fullmatch(text):
        return 0
    return int(text)


def _forward_action(target_group_arn: str) -> dict[str, str]:
    return {"TargetGroupArn": target_group_arn, "Type": ACTION_TYPE_FORWARD}


@dataclass
class Rule:
    """A routing rule deciding how traffic on a listener is forwarded."""

    arn: str = ""
    is_default: bool = False
    priority: int = 0
    target_group_arn: str = ""
    type: str = ""
    value: str = ""

    def __str__(self) -> str:
        return "=".join([self.type, self.value])


@dataclass
class Listener:
    """A port and protocol on a load balancer that accepts traffic."""

    arn: str = ""
    certificate_arns: list[str] = field(default_factory=list)
    port: int = 0
    protocol: str = ""
    rules: list[Rule] = field(default_factory=list)

    def __str__(self) -> str:
        return f"{self.protocol}:{self.port}"


class Listeners(list):
    """A collection of listeners."""

    def __str__(self) -> str:
        return ", ".join(str(listener) for listener in self)


@dataclass
class CreateListenerParameters:
    """Parameters for creating a listener."""

    certificate_arns: list[str] = field(default_factory=list)
    default_target_group_arn: str = ""
    load_balancer_arn: str = ""
    port: int = 0
    protocol: str = ""

    def set_certificate_arns(self, arns: list[str]) -> None:
        self.certificate_arns = arns


def _to_listener(raw: dict[str, Any]) -> Listener:
    return Listener(
        arn=raw.get("ListenerArn") or "",
        port=raw.get("Port") or 0,
        protocol=raw.get("Protocol") or "",
        certificate_arns=[
            c.get("CertificateArn") or "" for c in raw.get("Certificates") or []
        ],
    )


class SDKClient(LoadBalancerOperations, TargetGroupOperations):
    """Access to Elastic Load Balancing (v2) through a boto3-style client."""

    def create_listener(self, params: CreateListenerParameters) -> str:
        """Create a listener and return its ARN. Client errors propagate."""
        request: dict[str, Any] = {
            "Port": params.port,
            "Protocol": params.protocol,
            "LoadBalancerArn": params.load_balancer_arn,
            "DefaultActions": [_forward_action(params.default_target_group_arn)],
        }
        if params.certificate_arns:
            request["Certificates"] = [
                {"CertificateArn": arn} for arn in params.certificate_arns
            ]

        resp = self._client.create_listener(**request)
        return resp["Listeners"][0].get("ListenerArn") or ""

    def _iter_listeners(self, lb_arn: str):
        kwargs: dict[str, Any] = {"LoadBalancerArn": lb_arn}
        while True:
            resp = self._client.describe_listeners(**kwargs)
            for raw in resp.get("Listeners") or []:
                yield _to_listener(raw)
            marker = resp.get("NextMarker")
            if not marker:
                return
            kwargs["Marker"] = marker

    def describe_listeners(self, lb_arn: str) -> Listeners:
        """Return all listeners of a load balancer. Client errors propagate."""
        return Listeners(self._iter_listeners(lb_arn))

    def modify_load_balancer_default_action(self, lb_arn: str, target_group_arn: str) -> None:
        """Point the default action of every listener at a target group."""
        for listener in self.get_listeners(lb_arn):
            self.modify_listener_default_action(listener.arn, target_group_arn)

    def modify_listener_default_action(self, listener_arn: str, target_group_arn: str) -> None:
        """Point a listener's default action at a target group; failures are ignored."""
        with suppress(Exception):
            self._client.modify_listener(
                ListenerArn=listener_arn,
                DefaultActions=[_forward_action(target_group_arn)],
            )

    def add_rule(self, lb_arn: str, target_group_arn: str, rule: Rule) -> None:
        """Add a rule to every listener of a load balancer."""
        logger.debug("Adding ELB listener rule [%s=%s]", rule.type, rule.value)
        for listener in self.get_listeners(lb_arn):
            self.add_rule_to_listener(listener.arn, target_group_arn, rule)

    def add_rule_to_listener(self, listener_arn: str, target_group_arn: str, rule: Rule) -> None:
        """Add a rule after the listener's highest priority; creation failures are ignored."""
        field_name = "host-header" if rule.type == "HOST" else "path-pattern"
        priority = self.get_highest_priority_from_listener(listener_arn) + 10
        with suppress(Exception):
            self._client.create_rule(
                Priority=priority,
                ListenerArn=listener_arn,
                Actions=[_forward_action(target_group_arn)],
                Conditions=[{"Field": field_name, "Values": [rule.value]}],
            )

    def describe_rules(self, listener_arn: str) -> list[Rule]:
        """Return the rules of a listener, one per condition value, plus the default."""
        try:
            resp = self._client.describe_rules(ListenerArn=listener_arn)
        except Exception as exc:
            raise OperationError("Could not describe ELB rules", exc) from exc

        field_names = {"host-header": "HOST", "path-pattern": "PATH"}
        rules: list[Rule] = []
        for raw in resp.get("Rules") or []:
            target_group_arn = (raw.get("Actions") or [{}])[0].get("TargetGroupArn") or ""
            for condition in raw.get("Conditions") or []:
                field_name = field_names.get(condition.get("Field") or "", "")
                for value in condition.get("Values") or []:
                    rules.append(
                        Rule(
                            arn=raw.get("RuleArn") or "",
                            priority=_atoi(raw.get("Priority")),
                            target_group_arn=target_group_arn,
                            type=field_name,
                            value=value or "",
                        )
                    )
            if raw.get("IsDefault"):
                rules.append(
                    Rule(target_group_arn=target_group_arn, type="DEFAULT", is_default=True)
                )
        return rules

    def get_highest_priority_from_listener(self, listener_arn: str) -> int:
        """Return the highest rule priority on a listener; the default rule counts as 0."""
        try:
            resp = self._client.describe_rules(ListenerArn=listener_arn)
        except Exception as exc:
            raise OperationError("Could not retrieve ELB listener rules", exc) from exc

        priorities = [_atoi(rule.get("Priority")) for rule in resp.get("Rules") or []]
        if not priorities:
            raise OperationError("Could not retrieve ELB listener rules")
        return max(priorities)

    def get_listeners(self, lb_arn: str) -> list[Listener]:
        """Return all listeners of a load balancer."""
        try:
            return list(self._iter_listeners(lb_arn))
        except Exception as exc:
            raise OperationError("Could not retrieve ELB listeners", exc) from exc

    def delete_rule(self, rule_arn: str) -> None:
        try:
            self._client.delete_rule(RuleArn=rule_arn)
        except Exception as exc:
            raise OperationError("Could not delete ELB rule", exc) from exc
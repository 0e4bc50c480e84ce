"""Security Token Service lookups."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fargate.aws import OperationError


@dataclass
class CallerIdentity:
    """The identity making requests."""

    account: str = ""
    arn: str = ""
    user_id: str = ""


class STS:
    """STS access through a boto3-style client."""

    def __init__(self, svc: Any) -> None:
        self._svc = svc

    def get_caller_identity(self) -> CallerIdentity:
        """Return the account, ARN and user ID of the caller."""
        try:
            resp = self._svc.get_caller_identity()
        except Exception as exc:
            raise OperationError("Error calling GetCallerIdentity", exc) from exc
        return CallerIdentity(account=resp["Account"], arn=resp["Arn"], user_id=resp["UserId"])
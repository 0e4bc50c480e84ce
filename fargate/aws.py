"""Errors shared by the AWS service clients.

The service clients in this package wrap boto3-style client objects: methods
take keyword arguments named after the API fields and return plain
dictionaries. A client signals an API failure by raising an exception; an
:class:`ApiError` carries the service's error code.
"""

from __future__ import annotations


class ApiError(Exception):
    """An error reported by an AWS API, identified by its error code."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(code, message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class OperationError(Exception):
    """An operation against AWS failed; ``cause`` is the underlying error, if any."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is None:
            return self.message
        return f"{self.message}: {self.cause}"
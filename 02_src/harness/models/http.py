"""HTTP gateway result models."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class PostResult:
    """Response of a POST to the system under test."""

    status_code: int
    body: Any  # parsed JSON when the response is JSON, else text


@dataclass(frozen=True)
class GetResult:
    """Response of a GET against the system under test."""

    success: bool
    body: Any
    status_code: int = 0

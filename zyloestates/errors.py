from typing import Any, Optional

from pydantic import ValidationError


class StoreError(Exception):
    """Base class for rejected store and import operations."""


class InvalidPayload(StoreError):
    def __init__(self, entity: str, reason: str):
        super().__init__(f"invalid {entity}: {reason}")
        self.entity = entity
        self.reason = reason

    @classmethod
    def from_validation(cls, entity: str, exc: ValidationError) -> "InvalidPayload":
        parts = []
        for err in exc.errors():
            loc = ".".join(str(p) for p in err.get("loc", ())) or "payload"
            parts.append(f"{loc}: {err.get('msg')}")
        return cls(entity, "; ".join(parts))


class DuplicateKey(StoreError):
    def __init__(self, entity: str, field: str, value: Any):
        super().__init__(f"{entity} with {field}={value!r} already exists")
        self.entity = entity
        self.field = field
        self.value = value


class UpstreamUnavailable(StoreError):
    def __init__(self, url: str, reason: str, status: Optional[int] = None):
        super().__init__(f"listings feed {url} unavailable: {reason}")
        self.url = url
        self.reason = reason
        self.status = status


class AdvisorError(Exception):
    """The language model was unavailable or replied with something unusable."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason

"""Domain event primitives shared by every app."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4


@dataclass(frozen=True)
class DomainEvent:
    """Base domain event (immutable).

    Subclasses add their own fields; every field must have a default
    because the base already declares defaulted fields.
    """

    aggregate_id: UUID
    event_id: UUID = field(default_factory=uuid4)
    occurred_on: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_name: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "event_name", self.__class__.__name__)

    def to_log_fields(self) -> dict[str, Any]:
        """Flatten the event into JSON-friendly structlog key/values."""
        fields = asdict(self)
        for key, value in fields.items():
            if isinstance(value, (UUID, datetime)):
                fields[key] = str(value)
        return fields

from decimal import Decimal

from pydantic import BaseModel, field_validator


class ARIValues(BaseModel):
    """Per-date values of one rate plan as reported by the channel manager."""
    rate: Decimal | None = None
    availability: int | None = None
    min_stay: int | None = None
    max_stay: int | None = None
    closed_to_arrival: bool | None = None
    closed_to_departure: bool | None = None
    stop_sell: bool | None = None


class ARISnapshot(BaseModel):
    """Authoritative snapshot keyed by external entity id, then YYYY-MM-DD."""
    rate_plans: dict[str, dict[str, ARIValues]] = {}
    room_types: dict[str, dict[str, int | None]] = {}


class RestrictionRecord(BaseModel):
    property_id: str
    rate_plan_id: str
    date: str
    rate: Decimal | None = None
    availability: int | None = None
    min_stay: int | None = None
    max_stay: int | None = None
    closed_to_arrival: bool | None = None
    closed_to_departure: bool | None = None
    stop_sell: bool | None = None


class AvailabilityRecord(BaseModel):
    property_id: str
    room_type_id: str
    date: str
    availability: int


class PushWarning(BaseModel):
    date: str | None = None
    rate_plan_id: str | None = None
    room_type_id: str | None = None
    warning: dict[str, list[str]] = {}

    @field_validator("warning", mode="before")
    @classmethod
    def _listify(cls, value):
        if not isinstance(value, dict):
            return {"message": [str(value)]}
        return {
            k: [str(m) for m in v] if isinstance(v, (list, tuple)) else [str(v)]
            for k, v in value.items()
        }

    def dedup_key(self) -> tuple:
        return (
            self.date,
            self.rate_plan_id,
            self.room_type_id,
            tuple(sorted((k, tuple(v)) for k, v in self.warning.items())),
        )


class PushResult(BaseModel):
    warnings: list[PushWarning] = []


class PersistedDraft(BaseModel):
    """Unsaved draft as written to the durable local store."""
    date_range_key: str
    rates: dict[str, dict[str, Decimal]] = {}
    availability: dict[str, dict[str, int]] = {}
    restrictions: dict[str, dict[str, dict[str, bool | int]]] = {}
    selected_days: list[str] = []

from datetime import date as date_cls
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

SLOTS_PER_DAY = 48


class Sport(BaseModel):
    id: int | str
    name: str
    rate_per_hour: float
    sport_type: str | None = None

    @property
    def label(self) -> str:
        return self.sport_type or self.name


class Turf(BaseModel):
    id: int | str
    name: str
    slug: str | None = None
    location: str | None = None
    sports: List[Sport] = []

    def get_sport(self, sport_id: int | str) -> Sport | None:
        for sport in self.sports:
            if str(sport.id) == str(sport_id):
                return sport
        return None


class TimeSlot(BaseModel):
    start_time: str  # HH:MM, venue local time
    end_time: str  # HH:MM, venue local time
    value: int
    is_booked: bool = False

    @property
    def is_available(self) -> bool:
        return not self.is_booked


class TimeRange(BaseModel):
    start_time: str
    end_time: str
    duration: float  # hours
    total_price: float
    start_slot_value: int
    end_slot_value: int


class BookingRequest(BaseModel):
    """Payload for the create-booking call. Dumps to the backend's wire keys with ``by_alias=True``."""

    model_config = ConfigDict(populate_by_name=True)

    turf_id: int | str = Field(alias="turfId")
    sport_id: int | str = Field(alias="sportId")
    date: str  # ISO format YYYY-MM-DD
    start_time: str = Field(alias="startTime")
    end_time: str = Field(alias="endTime")
    duration: float
    start_slot_value: int = Field(ge=0, lt=SLOTS_PER_DAY)
    end_slot_value: int = Field(ge=0, lt=SLOTS_PER_DAY)
    total_price: float = Field(alias="totalPrice", ge=0)
    status: int = 1
    special_requests: str = Field(default="", alias="specialRequests")
    sport_type: str = Field(default="", alias="sportType")

    @field_validator("date")
    @classmethod
    def _check_iso_date(cls, value: str) -> str:
        date_cls.fromisoformat(value)
        return value

    @field_validator("special_requests", mode="before")
    @classmethod
    def _trim_requests(cls, value: Any) -> str:
        return (value or "").strip()

    @model_validator(mode="after")
    def _check_range(self) -> "BookingRequest":
        if self.start_slot_value > self.end_slot_value:
            raise ValueError("start_slot_value must not be after end_slot_value")
        return self

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class BookingRecord(BaseModel):
    id: int | str
    turf_id: int | str
    sport_id: int | str
    date: str
    start_time: str
    end_time: str
    duration: float
    start_slot_value: int
    end_slot_value: int
    total_price: float
    status: int | str = 1
    special_requests: str = ""
    created_at: str | None = None
    cancellation_reason: str | None = None

    @classmethod
    def from_api(cls, booking: Dict[str, Any]) -> "BookingRecord":
        """Builds a record from the backend's ``data.booking`` object.

        The backend nests turf and sport as objects and sends duration and
        price as decimal strings.
        """
        turf = booking.get("turf") or {}
        sport = booking.get("sport") or {}
        return cls(
            id=booking["id"],
            turf_id=turf.get("id", booking.get("turf_id")),
            sport_id=sport.get("id", booking.get("sport_id")),
            date=booking["date"],
            start_time=booking["start_time"][:5],
            end_time=booking["end_time"][:5],
            duration=float(booking["duration"]),
            start_slot_value=booking["start_slot_value"],
            end_slot_value=booking["end_slot_value"],
            total_price=float(booking["total_price"]),
            status=booking.get("status", 1),
            special_requests=booking.get("special_requests") or "",
            created_at=booking.get("created_at"),
            cancellation_reason=booking.get("cancellation_reason"),
        )

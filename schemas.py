import datetime
from typing import List

from pydantic import BaseModel, field_validator, model_validator

from conflicts import InvalidFormat, to_minutes


def normalize_time(value: str) -> str:
    """Parse ``H:MM``/``HH:MM`` into a zero-padded ``HH:MM`` string."""
    minutes = to_minutes(value)
    hours, mins = (int(part) for part in value.split(":"))
    if not (0 <= hours < 24 and 0 <= mins < 60):
        raise InvalidFormat(f"Time '{value}' is out of range")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


# Pydantic Schemas for Request/Response
class ReservationIn(BaseModel):
    date: datetime.date
    start: str
    end: str
    fields: List[str]
    group: str

    @field_validator("start", "end")
    @classmethod
    def _valid_time(cls, value: str) -> str:
        # InvalidFormat is a ValueError, which pydantic reports as a field error
        return normalize_time(value)

    @field_validator("fields")
    @classmethod
    def _valid_fields(cls, value: List[str]) -> List[str]:
        cleaned = []
        for field_id in value:
            field_id = field_id.strip()
            if not field_id:
                raise ValueError("Field ids must not be blank")
            if field_id not in cleaned:
                cleaned.append(field_id)
        if not cleaned:
            raise ValueError("At least one field is required")
        return cleaned

    @model_validator(mode="after")
    def _start_before_end(self) -> "ReservationIn":
        if to_minutes(self.start) >= to_minutes(self.end):
            raise ValueError("start must be before end")
        return self


class HealthStatus(BaseModel):
    ok: bool
    time: datetime.datetime

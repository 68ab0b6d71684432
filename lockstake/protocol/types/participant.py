from pydantic import BaseModel, ConfigDict, StrictBool, field_validator
from typing import Any
from ..crypto.hash import to_hex, to_int

class Participant(BaseModel):
    """One participant record submitted for settlement."""
    model_config = ConfigDict(frozen=True)

    address: str                # Felt address, normalized to 0x-hex
    stake_amount: int           # Minimal units
    start_time: int             # Unix seconds
    duration: int               # Seconds
    completion_status: StrictBool

    @field_validator("address", mode="before")
    @classmethod
    def _normalize_address(cls, v: Any) -> str:
        return to_hex(v)

    @field_validator("stake_amount", "start_time", "duration", mode="before")
    @classmethod
    def _parse_int(cls, v: Any) -> int:
        if isinstance(v, bool):
            raise ValueError("boolean is not a number")
        return to_int(v)

    @property
    def end_time(self) -> int:
        return self.start_time + self.duration

class RewardRecord(BaseModel):
    """A winner's share. Derived by the allocator, never stored."""
    address: str
    reward_amount: int
    weight: int
    stake_amount: int
    duration: int

from pydantic import BaseModel, ConfigDict
from typing import Optional
from .common import LockStatus
from ..config.params import SECONDS_PER_DAY, WINDOW_SECONDS

POOL_NAMES = {
    0: "Early Morning (00:00-06:00)",
    1: "Morning (06:00-12:00)",
    2: "Afternoon (12:00-18:00)",
    3: "Evening (18:00-24:00)",
}

class PoolKey(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: int        # Unix day: timestamp // 86400
    period: int     # Window index within the day

def classify_timestamp(timestamp: int, window_seconds: int = WINDOW_SECONDS) -> PoolKey:
    """Maps an absolute timestamp to its (day, period) pool key."""
    if timestamp < 0:
        raise ValueError(f"Negative timestamp: {timestamp}")
    return PoolKey(
        day=timestamp // SECONDS_PER_DAY,
        period=(timestamp % SECONDS_PER_DAY) // window_seconds,
    )

def pool_name(period: int, window_seconds: int = WINDOW_SECONDS) -> str:
    if window_seconds == WINDOW_SECONDS:
        return POOL_NAMES.get(period, "Unknown Pool")
    start = period * window_seconds
    end = start + window_seconds
    return f"Period {period} ({start // 3600:02d}:{start % 3600 // 60:02d}-{end // 3600:02d}:{end % 3600 // 60:02d})"

class Pool(BaseModel):
    """All locks opened within one window."""
    day: int
    period: int
    total_staked: int = 0
    participant_count: int = 0
    merkle_root: int = 0            # 0 until published
    finalized: bool = False

    @property
    def key(self) -> PoolKey:
        return PoolKey(day=self.day, period=self.period)

class Lock(BaseModel):
    """One participant's stake commitment for one pool."""
    owner: str
    day: int
    period: int
    stake_amount: int = 0
    start_time: int = 0
    duration: int = 0
    end_time: int = 0
    status: LockStatus = LockStatus.INACTIVE
    payout: Optional[int] = None    # Set once claimed

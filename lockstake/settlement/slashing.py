# MIT License
# Copyright (c) 2025 Hashborn

"""
Slashing & Weighting

Pure functions over participant records:
- stake_return: completed participants get their stake back, others lose it
- total_slashed: sum of forfeited stake, the reward pool
- participant_weight: stake * duration, the proportional claim basis

validate_participants() guards the batch before any of these run. The first
bad record aborts the whole batch; no partial results are produced.
"""

import logging
from typing import Any, Dict, List, Sequence

from pydantic import ValidationError as PydanticValidationError

from ..protocol.crypto.hash import FIELD_PRIME, U256_LIMIT, to_int
from ..protocol.types.common import ValidationError
from ..protocol.types.participant import Participant
from ..protocol.types.pool import classify_timestamp
from ..protocol.config.params import WINDOW_SECONDS

logger = logging.getLogger(__name__)


def stake_return(stake_amount: int, completed: bool) -> int:
    return stake_amount if completed else 0


def total_slashed(participants: Sequence[Participant]) -> int:
    return sum(p.stake_amount - stake_return(p.stake_amount, p.completion_status) for p in participants)


def participant_weight(stake_amount: int, duration: int) -> int:
    """Weight = stake_amount * duration (unbounded int, no overflow)."""
    return stake_amount * duration


def _positive(record: Dict[str, Any], field: str, index: int, limit: int) -> int:
    raw = record.get(field)
    if raw is None or isinstance(raw, bool):
        raise ValidationError(f"{field} must be a positive number", index=index, field=field)
    try:
        value = to_int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a positive number, got {raw!r}", index=index, field=field)
    if value <= 0:
        raise ValidationError(f"{field} must be a positive number, got {value}", index=index, field=field)
    if value >= limit:
        raise ValidationError(f"{field} {value} is out of range", index=index, field=field)
    return value


def _validate_record(record: Any, index: int) -> Participant:
    if not isinstance(record, dict):
        raise ValidationError("participant record must be an object", index=index)

    address = record.get("address")
    if not isinstance(address, str) or not address.strip():
        raise ValidationError("address must be a non-empty string", index=index, field="address")
    try:
        address_felt = to_int(address)
    except ValueError:
        raise ValidationError(f"address {address!r} is not a number", index=index, field="address")
    if not 0 <= address_felt < FIELD_PRIME:
        raise ValidationError(f"address {address} is not a field element", index=index, field="address")

    _positive(record, "stake_amount", index, U256_LIMIT)

    if not isinstance(record.get("completion_status"), bool):
        raise ValidationError("completion_status must be a boolean", index=index, field="completion_status")

    _positive(record, "start_time", index, FIELD_PRIME)
    _positive(record, "duration", index, FIELD_PRIME)

    try:
        return Participant(**{k: record[k] for k in
                              ("address", "stake_amount", "start_time", "duration", "completion_status")})
    except PydanticValidationError as e:
        raise ValidationError(f"invalid participant: {e}", index=index)


def validate_participants(records: Sequence[Any], window_seconds: int = WINDOW_SECONDS) -> List[Participant]:
    """
    Validate a settlement batch.

    Args:
        records: Raw participant records (dicts)
        window_seconds: Pool window, used to check the batch is a single pool

    Returns:
        Parsed participants, in input order

    Raises:
        ValidationError: On the first invalid record
    """
    if not isinstance(records, (list, tuple)):
        raise ValidationError("users must be a list")
    if not records:
        raise ValidationError("settlement batch has no participants")

    participants = [_validate_record(record, i) for i, record in enumerate(records)]

    seen: Dict[str, int] = {}
    pool_key = classify_timestamp(participants[0].start_time, window_seconds)
    for i, p in enumerate(participants):
        if p.address in seen:
            raise ValidationError(
                f"duplicate address {p.address} (first seen at record {seen[p.address]})",
                index=i, field="address",
            )
        seen[p.address] = i

        key = classify_timestamp(p.start_time, window_seconds)
        if key != pool_key:
            raise ValidationError(
                f"start_time {p.start_time} falls in pool day={key.day} period={key.period}, "
                f"batch pool is day={pool_key.day} period={pool_key.period}",
                index=i, field="start_time",
            )

    logger.debug(f"Validated {len(participants)} participant records")
    return participants

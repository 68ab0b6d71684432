from enum import Enum
from typing import Optional

class LockStatus(str, Enum):
    INACTIVE = "INACTIVE"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"  # Terminal, winners and losers alike

class LedgerEvent(str, Enum):
    LOCK_CREATED = "lock_created"
    REWARD_CLAIMED = "reward_claimed"
    ROOT_PUBLISHED = "root_published"
    AUTHORITY_KEY_UPDATED = "authority_key_updated"

class ProtocolError(Exception):
    code = "PROTOCOL_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        if code is not None:
            self.code = code

class ValidationError(ProtocolError):
    """Malformed or out-of-range input. Off-line errors name the offending record."""
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, index: Optional[int] = None, field: Optional[str] = None,
                 code: Optional[str] = None):
        if index is not None:
            message = f"record {index}: {message}"
        super().__init__(message, code)
        self.index = index
        self.field = field

class AllocationArithmeticError(ProtocolError, ArithmeticError):
    code = "ARITHMETIC_ERROR"

class CryptoError(ProtocolError):
    code = "CRYPTO_ERROR"

class StateError(ProtocolError):
    code = "STATE_ERROR"

class TransferError(ProtocolError):
    code = "TRANSFER_FAILED"

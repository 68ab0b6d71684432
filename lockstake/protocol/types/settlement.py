from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

# Batch input

class PoolInfoInput(BaseModel):
    contract_address: str
    verifier_private_key: str

class SettlementInput(BaseModel):
    pool_info: PoolInfoInput
    # Validated record by record by the settlement engine
    users: List[Dict[str, Any]] = Field(default_factory=list)

# Batch output (amounts as decimal strings, hashes as 0x-hex)

class SignatureOutput(BaseModel):
    r: str
    s: str
    message_hash: str
    public_key: str

class UserResult(BaseModel):
    address: str
    start_time: int
    duration: int
    stake_amount: str
    completion_status: bool
    stake_return_amount: str
    reward_amount: str
    total_payout: str
    signature: SignatureOutput
    merkle_proof: List[str] = Field(default_factory=list)
    is_winner: bool
    claim_ready: bool = True

class PoolSummary(BaseModel):
    day: int
    period: int
    pool_name: Optional[str] = None
    contract_address: str
    merkle_root: str
    total_slashed_amount: str

class SettlementOutput(BaseModel):
    pool_info: PoolSummary
    protocol_fees: str
    rewards_for_winners: str
    rounding_dust: str = "0"        # Burned, never paid out
    user_results: List[UserResult] = Field(default_factory=list)

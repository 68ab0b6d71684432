# MIT License
# Copyright (c) 2025 Hashborn

import os
from typing import Dict

# Global Constants
DENOM = "strk"
DECIMALS = 18
SECONDS_PER_DAY = 86_400

# Pool windows: four 6-hour periods per day, shared by the settlement
# engine and the lock contract.
WINDOW_SECONDS = 21_600

class NetworkConfig:
    def __init__(self,
                 network_id: str,
                 window_seconds: int = WINDOW_SECONDS,
                 # Lock duration bounds (seconds)
                 min_duration: int = 15 * 60,
                 max_duration: int = SECONDS_PER_DAY,
                 # Fiat floor checked through the price feed (USD cents)
                 min_stake_usd: int = 100,
                 decimals: int = DECIMALS,
                 denom: str = DENOM):
        if window_seconds <= 0 or SECONDS_PER_DAY % window_seconds != 0:
            raise ValueError(f"window_seconds must divide {SECONDS_PER_DAY}, got {window_seconds}")
        if min_duration <= 0 or min_duration > max_duration:
            raise ValueError(f"Invalid duration bounds [{min_duration}, {max_duration}]")

        self.network_id = network_id
        self.window_seconds = window_seconds
        self.min_duration = min_duration
        self.max_duration = max_duration
        self.min_stake_usd = min_stake_usd
        self.decimals = decimals
        self.denom = denom

    @property
    def periods_per_day(self) -> int:
        return SECONDS_PER_DAY // self.window_seconds

NETWORKS: Dict[str, NetworkConfig] = {
    "devnet": NetworkConfig(
        network_id="devnet",
        min_duration=60,
        min_stake_usd=0,
    ),
    "testnet": NetworkConfig(
        network_id="testnet",
        min_stake_usd=100,        # $1.00
    ),
    "mainnet": NetworkConfig(
        network_id="mainnet",
        min_duration=30 * 60,
        max_duration=12 * 60 * 60,
        min_stake_usd=500,        # $5.00
    ),
}

# Default to devnet unless overridden
CURRENT_NETWORK = NETWORKS[os.environ.get("LOCKSTAKE_NETWORK", "devnet")]

# MIT License
# Copyright (c) 2025 Hashborn

"""
Prometheus Metrics Exporter

Exports settlement and lock contract metrics in Prometheus format.

Metrics:
- Settlement runs, duration, winners and slashed volume per run
- Deposits, claims by outcome, rejected calls by error code
- Payout volume, published roots
- Contract gauges (pools, active locks, total staked)
"""

from prometheus_client import Counter, Gauge, Histogram, CollectorRegistry

# Create registry for metrics
metrics_registry = CollectorRegistry()

# ═══════════════════════════════════════════════════════════════════
# SETTLEMENT METRICS
# ═══════════════════════════════════════════════════════════════════

settlement_runs_total = Counter(
    'lockstake_settlement_runs_total',
    'Total settlement batches processed',
    ['status'],
    registry=metrics_registry
)

settlement_duration_seconds = Histogram(
    'lockstake_settlement_duration_seconds',
    'Wall time of one settlement batch',
    buckets=[0.1, 0.5, 1, 5, 10, 30, 60],
    registry=metrics_registry
)

settlement_winners = Histogram(
    'lockstake_settlement_winners',
    'Number of winners per settled pool',
    buckets=[0, 1, 5, 10, 50, 100, 500, 1000],
    registry=metrics_registry
)

settlement_slashed_total = Counter(
    'lockstake_settlement_slashed_total',
    'Total stake slashed across settled pools (minimal units)',
    registry=metrics_registry
)

settlement_dust_total = Counter(
    'lockstake_settlement_dust_total',
    'Total rounding dust burned (minimal units)',
    registry=metrics_registry
)

# ═══════════════════════════════════════════════════════════════════
# CONTRACT METRICS
# ═══════════════════════════════════════════════════════════════════

deposits_total = Counter(
    'lockstake_deposits_total',
    'Total locks created',
    registry=metrics_registry
)

claims_total = Counter(
    'lockstake_claims_total',
    'Total successful claims',
    ['outcome'],
    registry=metrics_registry
)

rejected_calls_total = Counter(
    'lockstake_rejected_calls_total',
    'Contract calls rejected, by error code',
    ['call', 'code'],
    registry=metrics_registry
)

payout_volume_total = Counter(
    'lockstake_payout_volume_total',
    'Total amount paid out by claims (minimal units)',
    registry=metrics_registry
)

roots_published_total = Counter(
    'lockstake_roots_published_total',
    'Total merkle roots published',
    registry=metrics_registry
)

pools_total = Gauge(
    'lockstake_pools_total',
    'Number of pools known to the contract',
    registry=metrics_registry
)

pools_finalized = Gauge(
    'lockstake_pools_finalized',
    'Number of pools with a published root',
    registry=metrics_registry
)

active_locks = Gauge(
    'lockstake_active_locks',
    'Number of locks in ACTIVE status',
    registry=metrics_registry
)

total_staked = Gauge(
    'lockstake_total_staked',
    'Stake held by active locks (minimal units)',
    registry=metrics_registry
)


# ═══════════════════════════════════════════════════════════════════
# HELPER FUNCTIONS
# ═══════════════════════════════════════════════════════════════════

def update_metrics(contract):
    """
    Update gauges from contract state.
    Called when metrics are scraped. Counters are updated at the call site.

    Args:
        contract: LockContract instance
    """
    from ..protocol.types.common import LockStatus

    state = contract.state
    pools = state.all_pools()
    pools_total.set(len(pools))
    pools_finalized.set(sum(1 for p in pools if p.finalized))

    active = [lock for lock in state.all_locks() if lock.status == LockStatus.ACTIVE]
    active_locks.set(len(active))
    total_staked.set(sum(lock.stake_amount for lock in active))


def record_settlement(allocation, elapsed: float):
    """
    Record a completed settlement batch.

    Args:
        allocation: Allocation produced by the RewardAllocator
        elapsed: Seconds spent on the batch
    """
    settlement_runs_total.labels(status="success").inc()
    settlement_duration_seconds.observe(elapsed)
    settlement_winners.observe(allocation.winner_count)
    settlement_slashed_total.inc(allocation.total_slashed)
    settlement_dust_total.inc(allocation.dust)

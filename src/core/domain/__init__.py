"""
Domain models and value objects.

Contains pool entities (PoolSnapshot, CurveParams, PoolView, PoolCacheRecord),
unit conversions and the failure taxonomy.
"""

from src.core.domain.errors import (
    Failure,
    FailureKind,
    LedgerDecodeError,
    LedgerRpcError,
)
from src.core.domain.pool import (
    CANONICAL_CURVE,
    CurveParams,
    DecayProjection,
    LedgerDecayState,
    PoolCacheRecord,
    PoolLifecycle,
    PoolSnapshot,
    PoolView,
    ProjectionSource,
    TokenSide,
)
from src.core.domain.units import (
    MILLIONTHS,
    SECONDS_PER_DAY,
    TOKEN_DECIMALS,
    TOKEN_PRECISION,
    USDC_DECIMALS,
    USDC_PRECISION,
    atomic_to_display,
    bps_to_fraction,
    display_to_atomic,
    micro_to_usdc,
    millionths_to_score,
    score_to_millionths,
    usdc_to_micro,
    whole_days_between,
)

__all__ = [
    # Errors
    "Failure",
    "FailureKind",
    "LedgerDecodeError",
    "LedgerRpcError",
    # Pool models
    "CANONICAL_CURVE",
    "CurveParams",
    "DecayProjection",
    "LedgerDecayState",
    "PoolCacheRecord",
    "PoolLifecycle",
    "PoolSnapshot",
    "PoolView",
    "ProjectionSource",
    "TokenSide",
    # Units module
    "MILLIONTHS",
    "SECONDS_PER_DAY",
    "TOKEN_DECIMALS",
    "TOKEN_PRECISION",
    "USDC_DECIMALS",
    "USDC_PRECISION",
    "atomic_to_display",
    "bps_to_fraction",
    "display_to_atomic",
    "micro_to_usdc",
    "millionths_to_score",
    "score_to_millionths",
    "usdc_to_micro",
    "whole_days_between",
]

"""
Core math modules движка пулов

Математические примитивы и законы кривой/decay/settlement с гарантией
целочисленного паритета с ledger.
"""

# Numerical Safeguards
from src.core.math.numerical_safeguards import (
    # Exceptions
    CurveDomainError,
    # Integer primitives
    isqrt_floor,
    mul_div,
    # Utilities
    clamp,
    # Validation
    validate_in_range,
    validate_non_negative_int,
)

# Fixed-point codec
from src.core.math.fixed_point import (
    BOOTSTRAP_PRICE_USDC,
    MAX_SQRT_PRICE_X96,
    Q32_ONE,
    Q96,
    decode_price,
    decode_price_micro,
    encode_price,
    encode_price_micro,
    mul_shift_right_96,
    ratio_to_q32,
)

# Curve
from src.core.math.curve import (
    PriceDiscrepancy,
    cost,
    cost_q96,
    derive_lambda_q96,
    detect_price_discrepancy,
    invert_cost,
    l2_norm,
    marginal_price,
    marginal_prices,
    sqrt_marginal_price_x96,
    validate_curve_params,
)

# Reserves
from src.core.math.reserves import (
    DEFAULT_RELEVANCE,
    BuyQuote,
    SellQuote,
    check_reserve_invariant,
    check_vault_invariant,
    quote_buy,
    quote_sell,
    relevance,
    virtual_reserve,
    virtual_reserves,
)

# Decay
from src.core.math.decay import (
    calculate_decayed_reserves,
    decay_rate_bps,
    is_decay_pending,
    project_decay,
)

# Settlement
from src.core.math.settlement import (
    SettlementResult,
    compute_settlement,
    is_settle_allowed,
    settlement_factors,
)

__all__ = [
    # Numerical Safeguards: Exceptions
    "CurveDomainError",
    # Numerical Safeguards: Integer primitives
    "isqrt_floor",
    "mul_div",
    # Numerical Safeguards: Utilities
    "clamp",
    # Numerical Safeguards: Validation
    "validate_in_range",
    "validate_non_negative_int",
    # Fixed point
    "BOOTSTRAP_PRICE_USDC",
    "MAX_SQRT_PRICE_X96",
    "Q32_ONE",
    "Q96",
    "decode_price",
    "decode_price_micro",
    "encode_price",
    "encode_price_micro",
    "mul_shift_right_96",
    "ratio_to_q32",
    # Curve
    "PriceDiscrepancy",
    "cost",
    "cost_q96",
    "derive_lambda_q96",
    "detect_price_discrepancy",
    "invert_cost",
    "l2_norm",
    "marginal_price",
    "marginal_prices",
    "sqrt_marginal_price_x96",
    "validate_curve_params",
    # Reserves
    "DEFAULT_RELEVANCE",
    "BuyQuote",
    "SellQuote",
    "check_reserve_invariant",
    "check_vault_invariant",
    "quote_buy",
    "quote_sell",
    "relevance",
    "virtual_reserve",
    "virtual_reserves",
    # Decay
    "calculate_decayed_reserves",
    "decay_rate_bps",
    "is_decay_pending",
    "project_decay",
    # Settlement
    "SettlementResult",
    "compute_settlement",
    "is_settle_allowed",
    "settlement_factors",
]

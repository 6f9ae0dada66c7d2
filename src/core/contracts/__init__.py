"""
Contract Validation Module

Модуль для валидации JSON контрактов ledger-а.
"""

from .validators import (
    ContractValidator,
    PoolDecayStateValidator,
    PoolStateValidator,
    SchemaLoader,
    validate_pool_decay_state,
    validate_pool_state,
)

__all__ = [
    # Classes
    "SchemaLoader",
    "ContractValidator",
    "PoolStateValidator",
    "PoolDecayStateValidator",
    # Functions
    "validate_pool_state",
    "validate_pool_decay_state",
]

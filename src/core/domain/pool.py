"""
Pool — Модели состояния пула

Immutable Pydantic модели:
- CurveParams: параметры кривой (F, β = beta_num / beta_den)
- PoolSnapshot: авторитетное состояние пула, прочитанное из ledger
- LedgerDecayState: результат read-only симуляции decay на стороне ledger
- DecayProjection: атомарная проекция decay (ledger или локальный закон)
- PoolView: human-scale представление для presentation
- PoolCacheRecord: строка локального кэша

Все целочисленные поля приходят уже декодированными (см.
src.ledger.decoding.parse_wide_int); модели работают в strict-режиме и
не принимают float/строки вместо целых.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Final

from pydantic import BaseModel, Field, field_validator, model_validator

from src.core.domain.errors import FailureKind

# sqrt-price хранится в u128
SQRT_PRICE_LIMIT: Final[int] = 1 << 128

CONTENT_ID_PATTERN: Final[str] = r"^[0-9a-f]{64}$"


# =============================================================================
# ENUMS
# =============================================================================


class TokenSide(str, Enum):
    """Сторона пула"""

    LONG = "long"
    SHORT = "short"

    @property
    def opposite(self) -> "TokenSide":
        return TokenSide.SHORT if self is TokenSide.LONG else TokenSide.LONG


class PoolLifecycle(str, Enum):
    """
    Стадия жизненного цикла пула (только вывод из snapshot).

    Движок никогда не инициирует переходы — их выполняет ledger.
    """

    CREATED = "created"
    DEPLOYED = "deployed"
    TRADING = "trading"
    CLOSED = "closed"


class ProjectionSource(str, Enum):
    """Источник decay-проекции"""

    LEDGER = "ledger"
    LOCAL = "local"


# =============================================================================
# CURVE PARAMS
# =============================================================================


class CurveParams(BaseModel):
    """
    Параметры coupled bonding surface.

    F — показатель кривой, β = beta_num / beta_den — коэффициент связи.
    Production-пулы используют только F=1, β=1/2 (L2-норма).
    """

    f: int = Field(..., ge=1, description="Показатель кривой F")
    beta_num: int = Field(..., ge=1, description="Числитель β")
    beta_den: int = Field(..., ge=1, description="Знаменатель β")

    model_config = {"frozen": True, "strict": True}

    @property
    def beta(self) -> Decimal:
        return Decimal(self.beta_num) / Decimal(self.beta_den)

    @property
    def is_canonical(self) -> bool:
        """True для F=1, β=1/2 (в любой несокращённой записи, например 2/4)."""
        return self.f == 1 and self.beta_den == 2 * self.beta_num


CANONICAL_CURVE: Final[CurveParams] = CurveParams(f=1, beta_num=1, beta_den=2)


# =============================================================================
# POOL SNAPSHOT
# =============================================================================


class PoolSnapshot(BaseModel):
    """
    Авторитетное состояние пула из ledger.

    Supplies — целые единицы токена; reserves и vault_balance — micro-USDC;
    sqrt-prices — sqrt(micro-USDC за единицу токена) * 2^96.
    curve может отсутствовать: ledger не повторяет параметры кривой при
    каждом чтении.
    """

    # Идентификация
    pool_address: str = Field(..., min_length=1, description="Адрес пула в ledger")
    content_id: str | None = Field(
        default=None, pattern=CONTENT_ID_PATTERN, description="32-байтовый content id (hex)"
    )

    # Supplies / reserves
    s_long: int = Field(..., ge=0, description="Supply LONG")
    s_short: int = Field(..., ge=0, description="Supply SHORT")
    r_long: int = Field(..., ge=0, description="Виртуальный резерв LONG (micro-USDC)")
    r_short: int = Field(..., ge=0, description="Виртуальный резерв SHORT (micro-USDC)")

    # Цены
    sqrt_price_long_x96: int = Field(..., ge=0)
    sqrt_price_short_x96: int = Field(..., ge=0)

    curve: CurveParams | None = Field(default=None, description="Параметры кривой")

    vault_balance: int = Field(..., ge=0, description="Фактический баланс vault (micro-USDC)")

    # Settlement
    last_settle_ts: int = Field(default=0, ge=0)
    min_settle_interval: int = Field(default=0, ge=0)
    current_epoch: int = Field(default=0, ge=0)

    # Decay
    expiration_timestamp: int = Field(default=0, ge=0)
    last_decay_update: int = Field(default=0, ge=0)

    model_config = {"frozen": True, "strict": True}

    @field_validator("sqrt_price_long_x96", "sqrt_price_short_x96")
    @classmethod
    def validate_sqrt_price_u128(cls, v: int) -> int:
        """sqrt-price обязана помещаться в u128."""
        if v >= SQRT_PRICE_LIMIT:
            raise ValueError(f"sqrt price {v} exceeds u128 range")
        return v

    @property
    def total_reserve(self) -> int:
        return self.r_long + self.r_short

    def supply(self, side: TokenSide) -> int:
        return self.s_long if side is TokenSide.LONG else self.s_short

    def reserve(self, side: TokenSide) -> int:
        return self.r_long if side is TokenSide.LONG else self.r_short

    def sqrt_price_x96(self, side: TokenSide) -> int:
        return self.sqrt_price_long_x96 if side is TokenSide.LONG else self.sqrt_price_short_x96

    @property
    def lifecycle(self) -> PoolLifecycle:
        """
        Стадия жизненного цикла.

        CREATED — supplies и reserves нулевые, эпох не было;
        CLOSED — supplies и reserves нулевые после хотя бы одной эпохи;
        DEPLOYED — ликвидность есть, settlement ещё не выполнялся;
        TRADING — был хотя бы один settlement.
        """
        empty = self.s_long == 0 and self.s_short == 0 and self.total_reserve == 0
        if empty:
            return PoolLifecycle.CLOSED if self.current_epoch > 0 else PoolLifecycle.CREATED
        if self.current_epoch == 0:
            return PoolLifecycle.DEPLOYED
        return PoolLifecycle.TRADING


class LedgerDecayState(BaseModel):
    """
    Ответ read-only view ledger-а simulateCurrentState.

    q — доля LONG в Q32 (2^32 = 1.0). Ledger является ground truth
    для decay-закона.
    """

    pool_address: str = Field(..., min_length=1)
    r_long: int = Field(..., ge=0)
    r_short: int = Field(..., ge=0)
    q_q32: int = Field(..., ge=0, le=1 << 32)
    s_long: int = Field(..., ge=0)
    s_short: int = Field(..., ge=0)
    sqrt_price_long_x96: int = Field(..., ge=0)
    sqrt_price_short_x96: int = Field(..., ge=0)
    days_expired: int = Field(..., ge=0)
    days_since_last_update: int = Field(..., ge=0)
    decay_pending: bool
    expiration_timestamp: int = Field(default=0, ge=0)
    last_decay_update: int = Field(default=0, ge=0)

    model_config = {"frozen": True, "strict": True}

    @field_validator("sqrt_price_long_x96", "sqrt_price_short_x96")
    @classmethod
    def validate_sqrt_price_u128(cls, v: int) -> int:
        if v >= SQRT_PRICE_LIMIT:
            raise ValueError(f"sqrt price {v} exceeds u128 range")
        return v


# =============================================================================
# ПРОЕКЦИИ И ПРЕДСТАВЛЕНИЯ
# =============================================================================


class DecayProjection(BaseModel):
    """
    Атомарная проекция decay на момент now.

    Все поля формируются одним вызовом; частичных обновлений нет.
    vault_balance переносится без изменений: decay сжимает только
    виртуальные резервы.
    """

    pool_address: str = Field(..., min_length=1)
    now: int = Field(..., ge=0)
    days_expired: int = Field(..., ge=0)
    days_since_last_update: int = Field(..., ge=0)
    decay_pending: bool
    r_long: int = Field(..., ge=0)
    r_short: int = Field(..., ge=0)
    vault_balance: int = Field(..., ge=0)
    relevance: Decimal = Field(..., ge=0, le=1)
    source: ProjectionSource

    model_config = {"frozen": True}

    @property
    def expired(self) -> bool:
        return self.days_expired > 0


class PoolView(BaseModel):
    """
    Presentation read model: только human-scale Decimal значения.

    available=False означает 'data unavailable' (NotFound/Timeout);
    числовые поля в этом случае None.
    """

    pool_address: str = Field(..., min_length=1)
    available: bool = True

    price_long: Decimal | None = None
    price_short: Decimal | None = None
    supply_long: Decimal | None = None
    supply_short: Decimal | None = None
    relevance: Decimal | None = None
    market_cap: Decimal | None = None
    vault_balance_display: Decimal | None = None
    decay_pending: bool = False

    # Диагностика
    inconsistent: bool = False
    failure_kind: FailureKind | None = None

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_availability(self) -> "PoolView":
        if not self.available and self.price_long is not None:
            raise ValueError("unavailable view must not carry prices")
        return self

    @classmethod
    def unavailable(cls, pool_address: str, failure_kind: FailureKind | None = None) -> "PoolView":
        """'Data unavailable' представление без сырых внутренних ошибок."""
        return cls(pool_address=pool_address, available=False, failure_kind=failure_kind)


class PoolCacheRecord(BaseModel):
    """
    Строка локального кэша (eventually-consistent зеркало PoolSnapshot).

    Любое поле может быть None: кэш пополняется частичными upsert-ами.
    Пишется только Reconciler-ом.
    """

    pool_address: str = Field(..., min_length=1)
    content_id: str | None = None

    s_long: int | None = None
    s_short: int | None = None
    r_long: int | None = None
    r_short: int | None = None
    sqrt_price_long_x96: int | None = None
    sqrt_price_short_x96: int | None = None

    f: int | None = None
    beta_num: int | None = None
    beta_den: int | None = None

    vault_balance: int | None = None
    last_settle_ts: int | None = None
    min_settle_interval: int | None = None
    current_epoch: int | None = None
    expiration_timestamp: int | None = None
    last_decay_update: int | None = None

    last_synced_at: datetime | None = None

    model_config = {"frozen": True}

    @property
    def curve(self) -> CurveParams | None:
        if self.f is None or self.beta_num is None or self.beta_den is None:
            return None
        return CurveParams(f=self.f, beta_num=self.beta_num, beta_den=self.beta_den)

    def to_snapshot(self) -> PoolSnapshot | None:
        """Snapshot из кэша; None если строка ещё не содержит volatile-полей."""
        required = (
            self.s_long,
            self.s_short,
            self.r_long,
            self.r_short,
            self.sqrt_price_long_x96,
            self.sqrt_price_short_x96,
            self.vault_balance,
        )
        if any(value is None for value in required):
            return None
        return PoolSnapshot(
            pool_address=self.pool_address,
            content_id=self.content_id,
            s_long=self.s_long,
            s_short=self.s_short,
            r_long=self.r_long,
            r_short=self.r_short,
            sqrt_price_long_x96=self.sqrt_price_long_x96,
            sqrt_price_short_x96=self.sqrt_price_short_x96,
            curve=self.curve,
            vault_balance=self.vault_balance,
            last_settle_ts=self.last_settle_ts or 0,
            min_settle_interval=self.min_settle_interval or 0,
            current_epoch=self.current_epoch or 0,
            expiration_timestamp=self.expiration_timestamp or 0,
            last_decay_update=self.last_decay_update or 0,
        )

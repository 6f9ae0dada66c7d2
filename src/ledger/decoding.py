"""
Единая граница декодирования payload-ов ledger-а.

Каждое числовое поле проходит ровно один раз через parse_wide_int и
превращается в Python int произвольной точности. Float никогда не
используется: значения шире 64 бит (sqrt-price X96) приходят строками.
"""

from typing import Any, Final

from jsonschema import ValidationError as SchemaValidationError
from pydantic import ValidationError

from src.core.contracts import PoolDecayStateValidator, PoolStateValidator
from src.core.domain.errors import LedgerDecodeError
from src.core.domain.pool import CurveParams, LedgerDecayState, PoolSnapshot

# wire-имя → поле PoolSnapshot
POOL_STATE_FIELDS: Final[dict[str, str]] = {
    "sLong": "s_long",
    "sShort": "s_short",
    "rLong": "r_long",
    "rShort": "r_short",
    "sqrtPriceLongX96": "sqrt_price_long_x96",
    "sqrtPriceShortX96": "sqrt_price_short_x96",
    "vaultBalance": "vault_balance",
    "lastSettleTs": "last_settle_ts",
    "minSettleInterval": "min_settle_interval",
    "currentEpoch": "current_epoch",
    "expirationTimestamp": "expiration_timestamp",
    "lastDecayUpdate": "last_decay_update",
}

CURVE_FIELDS: Final[dict[str, str]] = {
    "f": "f",
    "betaNum": "beta_num",
    "betaDen": "beta_den",
}

DECAY_STATE_FIELDS: Final[dict[str, str]] = {
    "rLong": "r_long",
    "rShort": "r_short",
    "q": "q_q32",
    "sLong": "s_long",
    "sShort": "s_short",
    "sqrtPriceLongX96": "sqrt_price_long_x96",
    "sqrtPriceShortX96": "sqrt_price_short_x96",
    "daysExpired": "days_expired",
    "daysSinceLastUpdate": "days_since_last_update",
    "expirationTimestamp": "expiration_timestamp",
    "lastDecayUpdate": "last_decay_update",
}


def parse_wide_int(value: Any, field: str = "value") -> int:
    """
    Декодирование неотрицательного целого из wire-представления.

    Допускается:
    - int (не bool)
    - десятичная строка ("12345")
    - hex-строка с префиксом 0x ("0x3039")

    Args:
        value: Сырое значение
        field: Имя поля для сообщения об ошибке

    Returns:
        Неотрицательный int

    Raises:
        LedgerDecodeError: float, bool, отрицательное число, мусорная строка

    Examples:
        >>> parse_wide_int("0x10")
        16
        >>> parse_wide_int("79228162514264337593543950336")
        79228162514264337593543950336
    """
    if isinstance(value, bool):
        raise LedgerDecodeError(f"{field}: boolean is not a numeric value")

    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        text = value.strip()
        try:
            if text[:2].lower() == "0x":
                result = int(text[2:], 16)
            elif text.isascii() and text.isdigit():
                result = int(text)
            else:
                raise ValueError(text)
        except ValueError as e:
            raise LedgerDecodeError(f"{field}: malformed integer {value!r}") from e
    else:
        raise LedgerDecodeError(
            f"{field}: expected int or string, got {type(value).__name__}"
        )

    if result < 0:
        raise LedgerDecodeError(f"{field}: negative value {result}")
    return result


def parse_content_id(value: Any) -> str | None:
    """Content id → 64 hex-символа в нижнем регистре без префикса 0x."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise LedgerDecodeError(f"contentId: expected string, got {type(value).__name__}")
    text = value.strip().lower()
    if text.startswith("0x"):
        text = text[2:]
    if len(text) != 64 or any(ch not in "0123456789abcdef" for ch in text):
        raise LedgerDecodeError(f"contentId: expected 32-byte hex, got {value!r}")
    return text


def _check_schema(validator, payload: Any, name: str) -> None:
    if not isinstance(payload, dict):
        raise LedgerDecodeError(f"{name}: expected object, got {type(payload).__name__}")
    try:
        validator.validate(payload)
    except SchemaValidationError as e:
        raise LedgerDecodeError(f"{name}: {'; '.join(validator.describe_errors(payload))}") from e


def _decode_fields(payload: dict, mapping: dict[str, str]) -> dict[str, int]:
    return {
        attr: parse_wide_int(payload[wire], wire)
        for wire, attr in mapping.items()
        if payload.get(wire) is not None
    }


def _decode_curve(payload: dict) -> CurveParams | None:
    raw = {attr: payload.get(wire) for wire, attr in CURVE_FIELDS.items()}
    if any(value is None for value in raw.values()):
        return None
    return CurveParams(**{attr: parse_wide_int(value, attr) for attr, value in raw.items()})


def decode_pool_state(
    address: str,
    payload: Any,
    validator: PoolStateValidator | None = None,
) -> PoolSnapshot:
    """
    Payload getPoolState → PoolSnapshot.

    Параметры кривой декодируются только если присутствуют все три.

    Raises:
        LedgerDecodeError: Несоответствие схеме или некорректные числа
    """
    _check_schema(validator or PoolStateValidator(), payload, "pool_state")

    try:
        fields = _decode_fields(payload, POOL_STATE_FIELDS)
        return PoolSnapshot(
            pool_address=address,
            content_id=parse_content_id(payload.get("contentId")),
            curve=_decode_curve(payload),
            **fields,
        )
    except ValidationError as e:
        raise LedgerDecodeError(f"pool_state: {e.error_count()} invalid field(s): {e}") from e


def decode_decay_state(
    address: str,
    payload: Any,
    validator: PoolDecayStateValidator | None = None,
) -> LedgerDecayState:
    """
    Payload simulateCurrentState → LedgerDecayState.

    Raises:
        LedgerDecodeError: Несоответствие схеме или некорректные числа
    """
    _check_schema(validator or PoolDecayStateValidator(), payload, "pool_decay_state")

    try:
        fields = _decode_fields(payload, DECAY_STATE_FIELDS)
        return LedgerDecayState(
            pool_address=address,
            decay_pending=payload["decayPending"],
            **fields,
        )
    except ValidationError as e:
        raise LedgerDecodeError(f"pool_decay_state: {e.error_count()} invalid field(s): {e}") from e

"""
Tests for JSON Schema Contract Validators

Комплексное тестирование JSON Schema валидаторов payload-ов ledger-а:
- Валидность самих схем
- Валидация правильных данных
- Детекция нарушений required полей
- Детекция нарушений типов и pattern
"""

import json
from pathlib import Path

import pytest
from jsonschema import ValidationError

from src.core.contracts import (
    PoolDecayStateValidator,
    PoolStateValidator,
    SchemaLoader,
    validate_pool_decay_state,
    validate_pool_state,
)

SCHEMA_DIR = Path(__file__).resolve().parents[2] / "src" / "core" / "contracts" / "schema"


# =============================================================================
# FIXTURES - VALID DATA SAMPLES
# =============================================================================


@pytest.fixture
def valid_pool_state():
    """Валидный pool_state (смесь int, десятичных и hex-строк)."""
    return {
        "address": "Pool1111",
        "contentId": "0x" + "ab" * 32,
        "sLong": 710,
        "sShort": "1575",
        "rLong": "0x7a120",
        "rShort": 500000,
        "sqrtPriceLongX96": "79228162514264337593543950336000",
        "sqrtPriceShortX96": "79228162514264337593543950336000",
        "f": 1,
        "betaNum": 1,
        "betaDen": 2,
        "vaultBalance": 1000000,
        "lastSettleTs": 0,
        "minSettleInterval": 3600,
        "currentEpoch": 0,
    }


@pytest.fixture
def valid_decay_state():
    """Валидный pool_decay_state."""
    return {
        "rLong": 489999,
        "rShort": 510000,
        "q": "2104533975",
        "sLong": 710,
        "sShort": 1575,
        "sqrtPriceLongX96": "0",
        "sqrtPriceShortX96": "0",
        "daysExpired": 1,
        "daysSinceLastUpdate": 1,
        "decayPending": True,
    }


# =============================================================================
# SCHEMA LOADER
# =============================================================================


class TestSchemaLoader:
    """Тесты загрузчика схем"""

    @pytest.mark.parametrize("name", ["pool_state", "pool_decay_state"])
    def test_schemas_are_valid_json(self, name: str) -> None:
        with open(SCHEMA_DIR / f"{name}.json", "r", encoding="utf-8") as f:
            schema = json.load(f)
        assert schema["$schema"] == "https://json-schema.org/draft/2020-12/schema"

    def test_load_and_cache(self) -> None:
        loader = SchemaLoader()
        first = loader.load_schema("pool_state")
        assert loader.load_schema("pool_state") is first

    def test_missing_schema(self) -> None:
        with pytest.raises(FileNotFoundError):
            SchemaLoader().load_schema("does_not_exist")

    def test_missing_directory(self, tmp_path: Path) -> None:
        with pytest.raises(RuntimeError):
            SchemaLoader(tmp_path / "nope")

    def test_invalid_schema_rejected(self, tmp_path: Path) -> None:
        (tmp_path / "broken.json").write_text(json.dumps({"type": 12}), encoding="utf-8")
        with pytest.raises(ValueError, match="Invalid JSON Schema"):
            SchemaLoader(tmp_path).load_schema("broken")


# =============================================================================
# POOL STATE
# =============================================================================


class TestPoolStateContract:
    """Тесты pool_state контракта"""

    def test_valid(self, valid_pool_state) -> None:
        validate_pool_state(valid_pool_state)
        assert PoolStateValidator().is_valid(valid_pool_state)

    def test_curve_fields_optional_and_nullable(self, valid_pool_state) -> None:
        for key in ("f", "betaNum", "betaDen"):
            del valid_pool_state[key]
        validate_pool_state(valid_pool_state)
        valid_pool_state["f"] = None
        valid_pool_state["contentId"] = None
        validate_pool_state(valid_pool_state)

    @pytest.mark.parametrize("field", ["sLong", "rShort", "sqrtPriceLongX96", "vaultBalance"])
    def test_required_fields(self, valid_pool_state, field: str) -> None:
        del valid_pool_state[field]
        with pytest.raises(ValidationError):
            validate_pool_state(valid_pool_state)

    @pytest.mark.parametrize("value", [-1, "-5", "12abc", "0x", True, [1], {"v": 1}])
    def test_malformed_wide_int(self, valid_pool_state, value) -> None:
        valid_pool_state["sLong"] = value
        assert not PoolStateValidator().is_valid(valid_pool_state)

    def test_content_id_pattern(self, valid_pool_state) -> None:
        valid_pool_state["contentId"] = "xyz"
        with pytest.raises(ValidationError):
            validate_pool_state(valid_pool_state)

    def test_describe_errors_lists_paths(self, valid_pool_state) -> None:
        valid_pool_state["sLong"] = "oops"
        del valid_pool_state["vaultBalance"]
        messages = PoolStateValidator().describe_errors(valid_pool_state)
        assert len(messages) == 2
        assert any(message.startswith("sLong:") for message in messages)
        assert any(message.startswith("<root>:") for message in messages)


# =============================================================================
# DECAY STATE
# =============================================================================


class TestPoolDecayStateContract:
    """Тесты pool_decay_state контракта"""

    def test_valid(self, valid_decay_state) -> None:
        validate_pool_decay_state(valid_decay_state)

    def test_decay_pending_must_be_boolean(self, valid_decay_state) -> None:
        valid_decay_state["decayPending"] = 1
        assert not PoolDecayStateValidator().is_valid(valid_decay_state)

    def test_q_required(self, valid_decay_state) -> None:
        del valid_decay_state["q"]
        with pytest.raises(ValidationError):
            validate_pool_decay_state(valid_decay_state)

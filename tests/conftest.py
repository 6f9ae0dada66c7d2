"""
Общие fixtures тестов движка пулов.
"""

import pytest
from loguru import logger

from src.cache.store import CacheStore
from src.core.domain.pool import PoolSnapshot

CONTENT_ID = "ab" * 32


@pytest.fixture(autouse=True)
def silence_loguru():
    """Глушим loguru: тесты проверяют поведение, а не вывод."""
    logger.remove()
    logger.add(lambda message: None, level="DEBUG")
    yield
    logger.remove()


@pytest.fixture
def log_messages():
    """Список сообщений loguru уровня WARNING и выше."""
    messages: list[str] = []
    handler_id = logger.add(lambda message: messages.append(message.record["message"]), level="WARNING")
    yield messages
    logger.remove(handler_id)


def make_snapshot(**overrides) -> PoolSnapshot:
    """Валидный snapshot с переопределяемыми полями."""
    fields = {
        "pool_address": "Pool1111",
        "content_id": CONTENT_ID,
        "s_long": 0,
        "s_short": 0,
        "r_long": 0,
        "r_short": 0,
        "sqrt_price_long_x96": 0,
        "sqrt_price_short_x96": 0,
        "vault_balance": 0,
    }
    fields.update(overrides)
    return PoolSnapshot(**fields)


@pytest.fixture
def snapshot_factory():
    return make_snapshot


@pytest.fixture
def cache_store(tmp_path):
    """CacheStore поверх файлового SQLite во временном каталоге."""
    store = CacheStore.from_url(f"sqlite:///{tmp_path / 'cache' / 'pools.db'}")
    store.create_schema()
    yield store
    store.engine.dispose()

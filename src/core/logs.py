"""
Настройка loguru для движка пулов.

Модули логируют через `from loguru import logger` с префиксом компонента
в квадратных скобках ([LedgerReader], [Reconciler], ...). Sink
устанавливается один раз на процесс.
"""

import sys
from typing import Any

from loguru import logger

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}"

_LOGGER_CONFIGURED = False


def configure_logging(level: str = "INFO", sink: Any = None, force: bool = False) -> None:
    """
    Установка единственного sink-а loguru.

    Args:
        level: Минимальный уровень (DEBUG/INFO/WARNING/ERROR)
        sink: Куда писать (по умолчанию stderr; путь к файлу включает ротацию)
        force: Переустановить sink, даже если логгер уже настроен
    """
    global _LOGGER_CONFIGURED
    if _LOGGER_CONFIGURED and not force:
        return

    logger.remove()
    if isinstance(sink, str):
        logger.add(
            sink,
            level=level,
            format=LOG_FORMAT,
            rotation="1 day",
            retention="30 days",
            enqueue=True,
        )
    else:
        logger.add(sink or sys.stderr, level=level, format=LOG_FORMAT)

    _LOGGER_CONFIGURED = True
    logger.debug("[Logging] configured level={}", level)

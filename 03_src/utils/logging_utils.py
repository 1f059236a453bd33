"""Настройка логирования для компонентов анализа."""

import logging

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

_component_loggers = set()


def _to_level(level) -> int:
    return getattr(logging, str(level).upper(), logging.INFO)


def get_logger(name: str, level: str = 'INFO') -> logging.Logger:
    """Возвращает логгер с консольным обработчиком (добавляется один раз)."""
    logger = logging.getLogger(name)
    logger.setLevel(_to_level(level))
    if not logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(console_handler)
    _component_loggers.add(name)
    return logger


def set_log_level(level: str) -> None:
    """Применяет уровень из конфигурации ко всем логгерам компонентов."""
    for name in _component_loggers:
        logging.getLogger(name).setLevel(_to_level(level))

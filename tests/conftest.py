from concurrent.futures import ThreadPoolExecutor
import logging
import socket

import pytest

from pynetmeter.meter import MeterLogger, MeterLoggerConfig


@pytest.fixture
def executor():
    """Пул потоков для серверной стороны измерителей."""
    pool = ThreadPoolExecutor(max_workers=2)
    yield pool
    pool.shutdown(wait=False, cancel_futures=True)


@pytest.fixture
def tcp_listener():
    """Listener на loopback с портом, выбранным ОС."""
    listener = socket.create_server(('127.0.0.1', 0))
    yield listener
    listener.close()


@pytest.fixture
def quiet_logger():
    """Логгер без вывода, для серверной стороны в тестах."""
    def make(name: str = 'test-server') -> MeterLogger:
        logger = MeterLogger(name)
        logger.setup(MeterLoggerConfig(use_console=False, level=logging.DEBUG))
        return logger
    return make

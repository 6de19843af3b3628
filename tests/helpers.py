import socket
import time

from pynetmeter.meter import ConnectError, Options


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


def loopback_options(
    defaults: Options,
    listener: socket.socket,
    **fields
) -> Options:
    """Настройки, указывающие на listener, с заменой полей (JSON-имена)."""
    port = listener.getsockname()[1]
    return defaults.overlay({'addr': f'127.0.0.1:{port}', **fields})


def jumping_clock(step_ns: int = 10**12):
    """Часы, которые при каждом вызове уходят вперед на step_ns."""
    now = 0

    def clock() -> int:
        nonlocal now
        now += step_ns
        return now
    return clock


def client_when_ready(meter, attempts: int = 300):
    """Запустить клиента, повторяя подключение, пока сервер не поднимется."""
    for _ in range(attempts):
        try:
            return meter.client()
        except ConnectError:
            time.sleep(0.01)
    raise AssertionError(f"server at {meter.provisioner} did not start")

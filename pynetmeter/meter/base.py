from contextlib import contextmanager, suppress
from enum import Enum
import os
import socket
import time
from typing import Callable, Generic, TypeVar

from pydantic import BaseModel

from pynetmeter.meter.connection import Provisioner, Transport, set_nodelay
from pynetmeter.meter.errors import (
    ConnectError,
    MeterError,
    ProtocolViolationError,
    TransportError,
)
from pynetmeter.meter.logger import MeterLogger
from pynetmeter.meter.options import Options


# Монотонные часы в наносекундах
Clock = Callable[[], int]

R = TypeVar('R', bound=BaseModel)


class MeterState(Enum):
    IDLE = 0
    CONNECTING = 1
    EXCHANGING = 2
    COMPLETED = 3
    FAILED = 4


def recv_exact(conn: socket.socket, buf: bytearray) -> None:
    """
    Прочитать из соединения ровно len(buf) байт.

    Raises:
        ProtocolViolationError: если соединение закрылось раньше, чем
            пришло сообщение целиком
        OSError: при ошибке сокета
    """
    view = memoryview(buf)
    expected = len(buf)
    received = 0
    while received < expected:
        n = conn.recv_into(view[received:])
        if n == 0:
            raise ProtocolViolationError(
                f"bad nread = {received}, expected {expected}",
                expected=expected,
                actual=received,
            )
        received += n


def send_exact(conn: socket.socket, data: bytes | bytearray) -> None:
    """
    Записать в соединение все байты `data`.

    В отличие от `sendall()`, знает, сколько байт ушло до разрыва.

    Raises:
        ProtocolViolationError: если пир закрыл или сбросил соединение
            раньше, чем сообщение ушло целиком
        OSError: при другой ошибке сокета
    """
    view = memoryview(data)
    expected = len(data)
    sent = 0
    while sent < expected:
        try:
            sent += conn.send(view[sent:])
        except (BrokenPipeError, ConnectionResetError) as err:
            raise ProtocolViolationError(
                f"bad nwrite = {sent}, expected {expected}: {err}",
                expected=expected,
                actual=sent,
            ) from err


class Meter(Generic[R]):
    """
    Общая часть измерителей задержки и пропускной способности.

    Измеритель привязан к своим настройкам и помнит только время начала
    текущего обмена (для поля elapsed журнала). Каждый вызов `server()`
    или `client()` использует ровно одно соединение. Переходы состояний
    (idle -> connecting -> exchanging -> completed | failed) пишутся в
    журнал.

    Наследники реализуют два метода:

    - `_serve(conn)`: обмен на стороне сервера;
    - `_measure(conn)`: обмен на стороне клиента, возвращает результат.

    Ошибки сокетов во время обмена превращаются в `TransportError`.
    Повторных попыток нет.
    """
    NAME = 'meter'

    def __init__(
        self,
        options: Options,
        logger: MeterLogger | None = None,
        clock: Clock | None = None
    ):
        self._options = options
        self._clock: Clock = clock or time.perf_counter_ns
        self._provisioner = Provisioner.from_options(options)

        # Начало текущего обмена, от него считается поле elapsed журнала
        self._started = self._clock()
        self._logger = logger or MeterLogger(self.NAME)
        self._logger.set_time_getter(
            lambda: (self._clock() - self._started) / 1e9
        )
        self._logger.setup()
        self._transition('meter', MeterState.IDLE)

    @property
    def options(self) -> Options:
        return self._options

    @property
    def logger(self) -> MeterLogger:
        return self._logger

    @property
    def provisioner(self) -> Provisioner:
        return self._provisioner

    def now(self) -> int:
        return self._clock()

    def _transition(self, role: str, state: MeterState) -> None:
        if state in (MeterState.CONNECTING, MeterState.EXCHANGING):
            self._started = self._clock()
        self._logger.debug("%s %s: -> %s", self.NAME, role, state.name)

    # ------------------------------------------------------------------
    # Сервер
    # ------------------------------------------------------------------
    def server(self, listener: socket.socket | None = None) -> None:
        """
        Принять одно соединение и провести обмен на стороне сервера.

        Если `listener` не передан, он создается по настройкам и
        закрывается после приема соединения. Переданный listener
        остается открытым, его закрывает вызывающий.

        Raises:
            ConnectError: если не удалось открыть listener или принять
                соединение
            TransportError: при ошибке во время обмена
        """
        self._transition('server', MeterState.CONNECTING)
        try:
            if listener is None:
                listener = self._provisioner.listen()
                self._logger.info(
                    "%s server listening on %s", self.NAME, self._provisioner
                )
                with self._owned_listener(listener):
                    conn = self._accept(listener)
            else:
                conn = self._accept(listener)
        except MeterError as err:
            self._transition('server', MeterState.FAILED)
            self._logger.error("%s server: %s", self.NAME, err)
            raise
        with conn:
            self.serve_conn(conn)

    def serve_conn(self, conn: socket.socket) -> None:
        """Провести обмен на стороне сервера по готовому соединению."""
        self._transition('server', MeterState.EXCHANGING)
        try:
            self._serve(conn)
        except OSError as err:
            self._transition('server', MeterState.FAILED)
            self._logger.error("%s server: %s", self.NAME, err)
            raise TransportError(f"{self.NAME} server: {err}") from err
        except MeterError as err:
            self._transition('server', MeterState.FAILED)
            self._logger.error("%s server: %s", self.NAME, err)
            raise
        self._transition('server', MeterState.COMPLETED)
        self._logger.info("%s server done", self.NAME)

    def _accept(self, listener: socket.socket) -> socket.socket:
        try:
            conn, peer = listener.accept()
        except OSError as err:
            raise ConnectError(f"accept failed: {err}") from err
        set_nodelay(conn)
        self._logger.info("%s server accepted connection from %s",
                          self.NAME, peer or 'local peer')
        return conn

    @contextmanager
    def _owned_listener(self, listener: socket.socket):
        """Закрыть listener и удалить файл unix-сокета при выходе."""
        try:
            yield listener
        finally:
            listener.close()
            if self._provisioner.transport is Transport.UNIX:
                with suppress(FileNotFoundError):
                    os.unlink(self._provisioner.address)

    # ------------------------------------------------------------------
    # Клиент
    # ------------------------------------------------------------------
    def client(self) -> R:
        """
        Подключиться к серверу по настройкам, провести обмен и вернуть
        результат. Соединение закрывается после обмена.

        Raises:
            ConnectError: если соединение установить не удалось
            TransportError: при ошибке во время обмена
            NoProgressError: если не завершилось ни одного раунда
        """
        self._transition('client', MeterState.CONNECTING)
        try:
            conn = self._provisioner.dial()
        except ConnectError as err:
            self._transition('client', MeterState.FAILED)
            self._logger.error("%s client: %s", self.NAME, err)
            raise
        self._logger.info("%s client connected to %s",
                          self.NAME, self._provisioner)
        with conn:
            return self.client_conn(conn)

    def client_conn(self, conn: socket.socket) -> R:
        """
        Как `client()`, но по уже установленному соединению (например,
        через туннель или прокси). Соединение не закрывается.
        """
        self._transition('client', MeterState.EXCHANGING)
        try:
            result = self._measure(conn)
        except OSError as err:
            self._transition('client', MeterState.FAILED)
            self._logger.error("%s client: %s", self.NAME, err)
            raise TransportError(f"{self.NAME} client: {err}") from err
        except MeterError as err:
            self._transition('client', MeterState.FAILED)
            self._logger.error("%s client: %s", self.NAME, err)
            raise
        self._transition('client', MeterState.COMPLETED)
        return result

    def _serve(self, conn: socket.socket) -> None:
        raise NotImplementedError

    def _measure(self, conn: socket.socket) -> R:
        raise NotImplementedError

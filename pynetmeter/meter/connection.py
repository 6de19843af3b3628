from enum import Enum
import os
import socket
import stat
from typing import TYPE_CHECKING

from pynetmeter.meter.errors import ConfigurationError, ConnectError

if TYPE_CHECKING:
    from pynetmeter.meter.options import Options


# Куда подключается клиент, если в адресе TCP не указан хост (":13501").
DEFAULT_DIAL_HOST = 'localhost'

SockAddr = tuple[str, int] | str


class Transport(str, Enum):
    """Семейство сокетов, через которое идет обмен."""
    TCP = 'tcp'    # надежный потоковый сетевой транспорт
    UNIX = 'unix'  # локальный канал (unix domain socket)

    def __str__(self):
        return self.value


def split_host_port(address: str) -> tuple[str, int]:
    """
    Разобрать адрес вида "host:port".

    Хост может быть пустым (":13501") и может быть IPv6 в квадратных
    скобках ("[::1]:13501").

    Raises:
        ConfigurationError: если адрес не удается разобрать
    """
    host, sep, port = address.strip().rpartition(':')
    if not sep:
        raise ConfigurationError(f"missing port in address {address!r}")
    if host.startswith('[') and host.endswith(']'):
        host = host[1:-1]
    elif ':' in host:
        raise ConfigurationError(
            f"IPv6 host must be enclosed in brackets: {address!r}"
        )
    try:
        port_num = int(port)
    except ValueError:
        raise ConfigurationError(
            f"invalid port {port!r} in address {address!r}"
        ) from None
    if not 0 <= port_num <= 0xFFFF:
        raise ConfigurationError(f"port out of range in address {address!r}")
    return host, port_num


def set_nodelay(conn: socket.socket) -> None:
    """Отключить алгоритм Нейгла для TCP-соединений."""
    if conn.family in (socket.AF_INET, socket.AF_INET6):
        conn.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)


class Provisioner:
    """
    Поставщик соединений для измерителей.

    По транспорту, адресу и локальному порту клиента определяет,
    как слушать (роль сервера) и как подключаться (роль клиента).

    Для `Transport.UNIX` адрес - это путь в файловой системе, а
    `client_port` игнорируется. Для `Transport.TCP` адрес имеет вид
    "host:port"; если `client_port > 0`, клиент перед подключением
    привязывается к этому локальному порту (0 - порт выбирает ОС).

    Ошибки разбора адреса возникают сразу, в конструкторе
    (`ConfigurationError`). Ошибки сокетов оборачиваются в `ConnectError`.
    Повторных попыток нет.
    """
    def __init__(
        self,
        transport: Transport | str,
        address: str,
        client_port: int = 0
    ):
        try:
            self.transport = Transport(transport)
        except ValueError:
            raise ConfigurationError(
                f"unknown transport {transport!r}, "
                f"expected one of {[t.value for t in Transport]}"
            ) from None
        if not address:
            raise ConfigurationError("address must not be empty")
        if not 0 <= client_port <= 0xFFFF:
            raise ConfigurationError(f"client port out of range: {client_port}")
        self.address = address
        self.client_port = client_port

        if self.transport is Transport.UNIX:
            self._host, self._port = '', 0
        else:
            self._host, self._port = split_host_port(address)

    @classmethod
    def from_options(cls, options: "Options") -> "Provisioner":
        return cls(options.transport, options.address, options.client_port)

    @property
    def family(self) -> int:
        if self.transport is Transport.UNIX:
            return socket.AF_UNIX
        if ':' in self._host:
            return socket.AF_INET6
        return socket.AF_INET

    def listen_target(self) -> tuple[int, SockAddr]:
        """
        Семейство сокета и адрес, на котором слушает сервер.

        Пустой хост означает все интерфейсы: если ОС умеет, сервер
        слушает IPv6 и IPv4 одним сокетом.
        """
        if self.transport is Transport.UNIX:
            return self.family, self.address
        if self.dualstack:
            return socket.AF_INET6, (self._host, self._port)
        return self.family, (self._host, self._port)

    @property
    def dualstack(self) -> bool:
        return (
            self.transport is Transport.TCP
            and not self._host
            and socket.has_dualstack_ipv6()
        )

    def dial_target(self) -> tuple[int, SockAddr]:
        """Семейство сокета и адрес, к которому подключается клиент."""
        if self.transport is Transport.UNIX:
            return self.family, self.address
        return self.family, (self._host or DEFAULT_DIAL_HOST, self._port)

    def listen(self, backlog: int = 1) -> socket.socket:
        """
        Открыть listener.

        Для unix domain socket предварительно удаляется оставшийся от
        прошлого запуска файл сокета.

        Raises:
            ConnectError: если не удалось привязаться к адресу
        """
        family, sockaddr = self.listen_target()
        try:
            if self.transport is Transport.UNIX:
                self._remove_stale_socket()
                listener = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
                try:
                    listener.bind(sockaddr)
                    listener.listen(backlog)
                except OSError:
                    listener.close()
                    raise
                return listener
            return socket.create_server(
                sockaddr, family=family, backlog=backlog,
                dualstack_ipv6=self.dualstack
            )
        except OSError as err:
            raise ConnectError(
                f"failed to listen on {self.transport}:{self.address}: {err}"
            ) from err

    def dial(self) -> socket.socket:
        """
        Установить исходящее соединение.

        Raises:
            ConnectError: если соединение установить не удалось
        """
        _, sockaddr = self.dial_target()
        try:
            if self.transport is Transport.UNIX:
                conn = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
                try:
                    conn.connect(sockaddr)
                except OSError:
                    conn.close()
                    raise
                return conn
            source = ('', self.client_port) if self.client_port else None
            conn = socket.create_connection(sockaddr, source_address=source)
            set_nodelay(conn)
            return conn
        except OSError as err:
            raise ConnectError(
                f"failed to dial {self.transport}:{self.address}: {err}"
            ) from err

    def _remove_stale_socket(self) -> None:
        try:
            mode = os.stat(self.address).st_mode
        except FileNotFoundError:
            return
        if stat.S_ISSOCK(mode):
            os.unlink(self.address)

    def __str__(self):
        return f"{self.transport}:{self.address}"

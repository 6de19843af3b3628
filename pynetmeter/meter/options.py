import json
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    model_validator,
)

from pynetmeter.meter.connection import Provisioner, Transport
from pynetmeter.meter.errors import ConfigurationError


DEFAULT_TIMEOUT_MS = 120_000

# Профиль измерителя задержки
DEFAULT_LATENCY_MSG_SIZE = 128
DEFAULT_LATENCY_NUM_MSG = 1000
DEFAULT_LATENCY_ADDRESS = ':13501'
DEFAULT_LATENCY_UNIX_ADDRESS = '/tmp/lat_benchmark.sock'

# Профиль измерителя пропускной способности
DEFAULT_THROUGHPUT_MSG_SIZE = 256 * 1024
DEFAULT_THROUGHPUT_NUM_MSG = 10000
DEFAULT_THROUGHPUT_ADDRESS = ':13500'
DEFAULT_THROUGHPUT_UNIX_ADDRESS = '/tmp/tp_benchmark.sock'


def normalize_keys(
    raw: dict[str, Any],
    unix_address: str | None = None
) -> dict[str, Any]:
    """
    Привести старый формат документа настроек к текущему.

    В старом формате вместо полей `addr` и `network` были поля
    `tcpAddress`, `unixAddress` и флаг `unixDomain`, а число сообщений
    измерителя задержки называлось `numPings`. Явно заданные поля текущего
    формата имеют приоритет.

    Если транспорт переключается на unix, но адрес не задан, используется
    `unix_address` (путь по-умолчанию для профиля), если он передан.
    """
    data = dict(raw)
    num_pings = data.pop('numPings', None)
    if num_pings is not None:
        data.setdefault('numMsg', num_pings)

    unix_domain = data.pop('unixDomain', None)
    tcp_address = data.pop('tcpAddress', None)
    legacy_unix_address = data.pop('unixAddress', None)
    if unix_domain is not None:
        data.setdefault(
            'network',
            Transport.UNIX.value if unix_domain else Transport.TCP.value
        )

    if str(data.get('network', '')) == Transport.UNIX.value:
        address = legacy_unix_address or unix_address
    else:
        address = tcp_address
    if address is not None:
        data.setdefault('addr', address)
    return data


class Options(BaseModel):
    """
    Настройки одного запуска измерителя (клиента или сервера).

    Одна и та же структура используется обоими измерителями, отличаются
    только профили значений по-умолчанию (см. `default_latency_options()`
    и `default_throughput_options()`). После создания не изменяется.
    """
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        extra='ignore',
        use_enum_values=False,
    )

    msg_size: int = Field(
        ..., gt=0, alias='msgSize',
        description="Размер сообщения в байтах"
    )
    num_msg: int = Field(
        ..., gt=0, alias='numMsg',
        description="Сколько сообщений (пингов) отправить"
    )
    address: str = Field(
        ..., min_length=1, alias='addr',
        description="Адрес сервера: host:port для tcp, путь для unix"
    )
    transport: Transport = Field(
        Transport.TCP, alias='network',
        description="Транспорт: tcp или unix"
    )
    client_port: int = Field(
        0, ge=0, le=0xFFFF, alias='clientPort',
        description="Локальный порт клиента (0 - выбирает ОС)"
    )
    timeout: int = Field(
        DEFAULT_TIMEOUT_MS, gt=0, alias='timeout',
        description="Бюджет времени клиента в миллисекундах"
    )

    @model_validator(mode='before')
    @classmethod
    def _accept_legacy_keys(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return normalize_keys(data)
        return data

    @model_validator(mode='after')
    def _check_address(self) -> "Options":
        # Адрес должен разбираться до любых операций ввода-вывода
        Provisioner.from_options(self)
        return self

    @property
    def timeout_ns(self) -> int:
        return self.timeout * 1_000_000

    def overlay(
        self,
        raw: dict[str, Any],
        unix_address: str | None = None
    ) -> "Options":
        """
        Построить новые настройки, заменив в текущих поля из `raw`.

        Нераспознанные поля игнорируются, отсутствующие остаются прежними.

        Raises:
            ConfigurationError: если результат не проходит валидацию
        """
        if self.transport is Transport.UNIX:
            # уже unix: путь по-умолчанию не должен затирать текущий адрес
            unix_address = None
        merged = self.model_dump(by_alias=True, mode='json')
        merged.update(normalize_keys(raw, unix_address=unix_address))
        try:
            return Options.model_validate(merged)
        except ValidationError as err:
            raise ConfigurationError(f"invalid options: {err}") from err

    def to_json(self, indent: int | None = 2) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)


def default_latency_options() -> Options:
    return Options(
        msg_size=DEFAULT_LATENCY_MSG_SIZE,
        num_msg=DEFAULT_LATENCY_NUM_MSG,
        address=DEFAULT_LATENCY_ADDRESS,
        transport=Transport.TCP,
        client_port=0,
        timeout=DEFAULT_TIMEOUT_MS,
    )


def default_throughput_options() -> Options:
    return Options(
        msg_size=DEFAULT_THROUGHPUT_MSG_SIZE,
        num_msg=DEFAULT_THROUGHPUT_NUM_MSG,
        address=DEFAULT_THROUGHPUT_ADDRESS,
        transport=Transport.TCP,
        client_port=0,
        timeout=DEFAULT_TIMEOUT_MS,
    )


def parse_options(
    data: bytes | str,
    defaults: Options,
    unix_address: str | None = None
) -> Options:
    """
    Разобрать JSON-документ с настройками и наложить его на `defaults`.

    Raises:
        ConfigurationError: битый JSON, документ не объект, или
            недопустимые значения полей
    """
    try:
        raw = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as err:
        raise ConfigurationError(f"malformed options JSON: {err}") from err
    if not isinstance(raw, dict):
        raise ConfigurationError(
            f"options JSON must be an object, got {type(raw).__name__}"
        )
    return defaults.overlay(raw, unix_address=unix_address)


def load_options(
    path: str,
    defaults: Options,
    unix_address: str | None = None
) -> Options:
    """Прочитать настройки из JSON-файла поверх `defaults`."""
    try:
        with open(path, 'rb') as f:
            data = f.read()
    except OSError as err:
        raise ConfigurationError(
            f"cannot read options file {path!r}: {err}"
        ) from err
    return parse_options(data, defaults, unix_address=unix_address)

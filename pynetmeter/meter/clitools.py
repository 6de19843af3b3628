from dataclasses import dataclass
import logging
from typing import Any, Callable

import click
from click.core import ParameterSource
from pydantic import BaseModel

from pynetmeter.meter.base import Meter
from pynetmeter.meter.connection import Transport
from pynetmeter.meter.errors import ConfigurationError, MeterError
from pynetmeter.meter.logger import MeterLogger, MeterLoggerConfig
from pynetmeter.meter.options import Options, load_options


@dataclass(frozen=True)
class MeterEntry:
    """Описание измерителя для CLI и HTTP: класс, профиль, вывод."""
    name: str
    meter_cls: type[Meter]
    defaults: Callable[[], Options]           # профиль по-умолчанию
    unix_address: str                         # путь unix-сокета по-умолчанию
    processing: Callable[..., None]           # вывод результата клиента


# Имя параметра click -> имя поля в JSON-документе настроек
OPTION_KEYS = {
    'msg_size': 'msgSize',
    'num_msg': 'numMsg',
    'addr': 'addr',
    'network': 'network',
    'client_port': 'clientPort',
    'timeout': 'timeout',
}


def log_file_option():
    return click.option(
        '--log-file', default=None, type=click.Path(dir_okay=False),
        help='Дублировать журнал в файл (к имени добавляется runId)'
    )


def meter_options(defaults: Options):
    """
    Набор опций click, общий для команд измерителей. Значения
    по-умолчанию берутся из профиля `defaults`.
    """
    opts = [
        click.option(
            '-c', '--client', is_flag=True, default=False,
            help='Запустить клиента (по-умолчанию - сервер)'
        ),
        click.option(
            '-f', '--options-file', default=None,
            type=click.Path(exists=True, dir_okay=False),
            help='JSON-файл с настройками (накладывается на профиль)'
        ),
        click.option(
            '-s', '--msg-size', type=click.IntRange(min=1),
            default=defaults.msg_size, show_default=True,
            help='Размер сообщения в байтах'
        ),
        click.option(
            '-n', '--num-msg', type=click.IntRange(min=1),
            default=defaults.num_msg, show_default=True,
            help='Сколько сообщений отправить'
        ),
        click.option(
            '-a', '--addr', default=defaults.address, show_default=True,
            help='Адрес сервера (host:port для tcp, путь для unix)'
        ),
        click.option(
            '--network', type=click.Choice([t.value for t in Transport]),
            default=defaults.transport.value, show_default=True,
            help='Транспорт'
        ),
        click.option(
            '-p', '--client-port', type=click.IntRange(0, 0xFFFF),
            default=defaults.client_port, show_default=True,
            help='Локальный порт клиента (0 - выбирает ОС)'
        ),
        click.option(
            '-t', '--timeout', type=click.IntRange(min=1),
            default=defaults.timeout, show_default=True,
            help='Бюджет времени клиента, мс'
        ),
        click.option(
            '--json', 'as_json', is_flag=True, default=False,
            help='Вывести результат в виде JSON'
        ),
        click.option(
            '--save', 'save_results', is_flag=True, default=False,
            help='Сохранить настройки и результат в папку results'
        ),
        click.option(
            '-v', '--verbose', is_flag=True, default=False,
            help='Подробный журнал (уровень DEBUG)'
        ),
        log_file_option(),
    ]

    def decorator(fn):
        for opt in reversed(opts):
            fn = opt(fn)
        return fn
    return decorator


def collect_options(
    ctx: click.Context,
    entry: MeterEntry,
    kwargs: dict[str, Any]
) -> Options:
    """
    Собрать настройки: профиль по-умолчанию, поверх него JSON-файл
    (если задан), поверх него опции, явно указанные в командной строке.
    """
    try:
        options = entry.defaults()
        if kwargs.get('options_file'):
            options = load_options(
                kwargs['options_file'], options, entry.unix_address
            )
        overrides = {
            key: kwargs[name]
            for name, key in OPTION_KEYS.items()
            if ctx.get_parameter_source(name) not in (
                None, ParameterSource.DEFAULT, ParameterSource.DEFAULT_MAP
            )
        }
        return options.overlay(overrides, unix_address=entry.unix_address)
    except ConfigurationError as err:
        raise click.UsageError(str(err), ctx=ctx) from err


def make_logger(
    name: str,
    verbose: bool = False,
    log_file: str | None = None
) -> MeterLogger:
    logger = MeterLogger(name)
    logger.setup(MeterLoggerConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        file_name=log_file,
    ))
    if logger.file_name:
        logger.info("writing log to %s", logger.file_name)
    return logger


def run_server(
    entry: MeterEntry,
    options: Options,
    logger: MeterLogger | None = None
) -> bool:
    """
    Запустить сервер измерителя. Ошибки уже записаны в журнал
    измерителем, здесь они не пробрасываются дальше, чтобы не ронять
    процесс, в котором работают другие серверы.
    """
    meter = entry.meter_cls(options, logger=logger)
    meter.logger.info("running %s server with: %s",
                      entry.name, options.to_json(indent=None))
    try:
        meter.server()
    except MeterError:
        return False
    return True


def run_client(
    entry: MeterEntry,
    options: Options,
    logger: MeterLogger | None = None
) -> BaseModel | None:
    """Запустить клиента измерителя. При ошибке возвращает None."""
    meter = entry.meter_cls(options, logger=logger)
    meter.logger.info("running %s client with: %s",
                      entry.name, options.to_json(indent=None))
    try:
        return meter.client()
    except MeterError:
        return None


def run_meter_command(ctx: click.Context, entry: MeterEntry, kwargs) -> None:
    """Тело команды `netmeter run <измеритель>`."""
    options = collect_options(ctx, entry, kwargs)
    logger = make_logger(
        entry.name, kwargs.get('verbose', False), kwargs.get('log_file')
    )
    if kwargs['client']:
        result = run_client(entry, options, logger)
        if result is None:
            ctx.exit(1)
        entry.processing(
            options, result,
            as_json=kwargs.get('as_json', False),
            save_results=kwargs.get('save_results', False),
        )
    elif not run_server(entry, options, logger):
        ctx.exit(1)

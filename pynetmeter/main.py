from concurrent.futures import ThreadPoolExecutor
import importlib
import pkgutil

import click

from pynetmeter.meter.clitools import (
    MeterEntry,
    log_file_option,
    make_logger,
    run_client,
    run_server,
)
from pynetmeter.meter.errors import ConfigurationError
from pynetmeter.meter.options import load_options


meters: dict[str, MeterEntry] = {}  # Заполняется в коде инициализации


# Корневая команда netmeter. Без подкоманды запускает оба измерителя
# сразу (по-умолчанию - оба сервера параллельно).
@click.group(invoke_without_command=True)
@click.option(
    '-c', '--client', is_flag=True, default=False,
    help='Запустить клиентов (по-умолчанию - серверы)'
)
@click.option(
    '--lat-options', default=None,
    type=click.Path(exists=True, dir_okay=False),
    help='JSON-файл с настройками измерителя задержки'
)
@click.option(
    '--tp-options', default=None,
    type=click.Path(exists=True, dir_okay=False),
    help='JSON-файл с настройками измерителя пропускной способности'
)
@click.option(
    '-v', '--verbose', is_flag=True, default=False,
    help='Подробный журнал (уровень DEBUG)'
)
@log_file_option()
@click.pass_context
def cli(ctx, client, lat_options, tp_options, verbose, log_file):
    """
    Измерение задержки и пропускной способности сети между двумя
    процессами.

    Если заданы --lat-options и/или --tp-options, запускаются только
    соответствующие измерители. Иначе - оба, с настройками по-умолчанию.
    """
    if ctx.invoked_subcommand is not None:
        return

    files = {'latency': lat_options, 'throughput': tp_options}
    if not any(files.values()):
        names = ['latency', 'throughput']
    else:
        names = [name for name, path in files.items() if path]

    jobs = []
    for name in names:
        entry = meters[name]
        options = entry.defaults()
        if files[name]:
            try:
                options = load_options(
                    files[name], options, entry.unix_address
                )
            except ConfigurationError as err:
                raise click.UsageError(str(err), ctx=ctx) from err
        jobs.append((entry, options))

    if client:
        failed = False
        for entry, options in jobs:
            logger = make_logger(entry.name, verbose, log_file)
            result = run_client(entry, options, logger)
            if result is None:
                failed = True
            else:
                entry.processing(options, result)
        if failed:
            ctx.exit(1)
    else:
        with ThreadPoolExecutor(max_workers=len(jobs)) as pool:
            futures = [
                pool.submit(
                    run_server, entry, options,
                    make_logger(entry.name, verbose, log_file)
                )
                for entry, options in jobs
            ]
            ok = all(f.result() for f in futures)
        if not ok:
            ctx.exit(1)


@cli.command('list')
def list_meters():
    """Выводит список измерителей."""
    for name in meters:
        print(f"* {name}")


@cli.group('run')
def run():
    """Запустить один измеритель."""
    pass


@cli.command('http')
@click.option(
    '-a', '--addr', default=':8080', show_default=True,
    help='Адрес HTTP-сервера (host:port)'
)
@log_file_option()
def serve_http(addr, log_file):
    """
    HTTP-сервер с точками /benchmate/latency и /benchmate/throughput.
    """
    from pynetmeter.web.app import serve
    serve(addr, meters, log_file)


#############################################################################
# ИНИЦИАЛИЗАЦИЯ
#
# Просматриваем все подмодули в модуле models. Для каждого подмодуля,
# в котором есть файл cli.py с командой click `cli_run`, добавляем её
# в группу `run` под именем подмодуля. Если в cli.py есть описание
# измерителя `ENTRY` (MeterEntry), запоминаем его в словаре meters: его
# используют корневая команда, `netmeter list` и HTTP-сервер.
#
# Например, для `models.latency.cli` в CLI будет добавлена команда
# `netmeter run latency`.
#############################################################################
def __initialize__():
    from pynetmeter import models
    for submodule in pkgutil.iter_modules(models.__path__):
        name = submodule.name
        try:
            module = importlib.import_module('.cli', f'pynetmeter.models.{name}')
        except ModuleNotFoundError as err:
            if err.name != f'pynetmeter.models.{name}.cli':
                raise
            print(f"WARNING: no cli.py found in pynetmeter.models.{name}")
            continue
        cmd = getattr(module, 'cli_run', None)
        if not isinstance(cmd, click.Command):
            print(f"WARNING: cli_run() in {name} must be a Click command")
            continue
        run.add_command(cmd, name)
        entry = getattr(module, 'ENTRY', None)
        if isinstance(entry, MeterEntry):
            meters[name] = entry


__initialize__()


if __name__ == '__main__':
    cli()

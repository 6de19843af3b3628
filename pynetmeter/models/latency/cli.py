import click

from pynetmeter.meter.clitools import MeterEntry, meter_options, run_meter_command
from pynetmeter.meter.options import (
    DEFAULT_LATENCY_UNIX_ADDRESS,
    default_latency_options,
)
from pynetmeter.models.latency.meter import LatencyMeter
from pynetmeter.models.latency.processing import result_processing


MODEL_NAME = 'latency'

ENTRY = MeterEntry(
    name=MODEL_NAME,
    meter_cls=LatencyMeter,
    defaults=default_latency_options,
    unix_address=DEFAULT_LATENCY_UNIX_ADDRESS,
    processing=result_processing,
)


@click.command()
@meter_options(default_latency_options())
@click.pass_context
def cli_run(ctx, **kwargs):
    '''
    Измерение задержки (пинг-понг).

    Сервер принимает одно соединение и возвращает клиенту каждое
    сообщение. Клиент считает среднюю задержку полу-раунда.
    '''
    run_meter_command(ctx, ENTRY, kwargs)


if __name__ == '__main__':
    cli_run()

import click

from pynetmeter.meter.clitools import MeterEntry, meter_options, run_meter_command
from pynetmeter.meter.options import (
    DEFAULT_THROUGHPUT_UNIX_ADDRESS,
    default_throughput_options,
)
from pynetmeter.models.throughput.meter import ThroughputMeter
from pynetmeter.models.throughput.processing import result_processing


MODEL_NAME = 'throughput'

ENTRY = MeterEntry(
    name=MODEL_NAME,
    meter_cls=ThroughputMeter,
    defaults=default_throughput_options,
    unix_address=DEFAULT_THROUGHPUT_UNIX_ADDRESS,
    processing=result_processing,
)


@click.command()
@meter_options(default_throughput_options())
@click.pass_context
def cli_run(ctx, **kwargs):
    '''
    Измерение пропускной способности.

    Клиент пишет данные в одно соединение, сервер их вычитывает.
    Клиент считает МБ/с и сообщения в секунду.
    '''
    run_meter_command(ctx, ENTRY, kwargs)


if __name__ == '__main__':
    cli_run()

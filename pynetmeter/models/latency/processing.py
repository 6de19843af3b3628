from tabulate import tabulate

from pynetmeter.meter.options import Options
from pynetmeter.meter.processing import result_to_json, save_results_to_file
from pynetmeter.models.latency.objects import LatencyResult


def print_results_to_terminal(options: Options, result: LatencyResult):
    print("Результаты измерения задержки:\n")
    print(tabulate(
        [
            ("Адрес", f"{options.transport}:{options.address}"),
            ("Размер сообщения, байт", options.msg_size),
            ("Полу-раундов", f"{result.num_pings} из {2 * options.num_msg}"),
            ("Длительность, мс", f"{result.elapsed_time / 1e6:.3f}"),
            ("Средняя задержка, мкс", f"{result.avg_latency_us:.3f}"),
        ],
        tablefmt="pretty",
        colalign=("left", "right"),
    ))


def result_processing(
    options: Options,
    result: LatencyResult,
    as_json: bool = False,
    save_results: bool = False
):
    """
    Обработка результата измерения задержки.

    Если save_results = True, то настройки и результат сохраняются
    в .json файл в папке results.

    Далее результат выводится в терминал: таблицей или, если
    as_json = True, в виде JSON.
    """
    if save_results:
        filename = save_results_to_file('latency', options, result)
        print(f"Результаты сохранены в {filename}")

    if as_json:
        print(result_to_json(result))
    else:
        print_results_to_terminal(options, result)

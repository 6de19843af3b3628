from tabulate import tabulate

from pynetmeter.meter.options import Options
from pynetmeter.meter.processing import result_to_json, save_results_to_file
from pynetmeter.models.throughput.objects import ThroughputResult


def print_results_to_terminal(options: Options, result: ThroughputResult):
    print("Результаты измерения пропускной способности:\n")
    print(tabulate(
        [
            ("Адрес", f"{options.transport}:{options.address}"),
            ("Размер сообщения, байт", result.msg_size),
            ("Сообщений", f"{result.num_msg} из {options.num_msg}"),
            ("Всего байт", result.total_data),
            ("Длительность, мс", f"{result.elapsed / 1e6:.3f}"),
            ("МБ/с", f"{result.throughput_mb_per_sec:.2f}"),
            ("Мбит/с", f"{result.throughput_mbit_per_sec:.2f}"),
            ("Сообщений/с", f"{result.throughput_msg_per_sec:.1f}"),
        ],
        tablefmt="pretty",
        colalign=("left", "right"),
    ))


def result_processing(
    options: Options,
    result: ThroughputResult,
    as_json: bool = False,
    save_results: bool = False
):
    """
    Обработка результата измерения пропускной способности.

    Аналогично latency.processing.result_processing(): при необходимости
    сохраняет результат в папку results и выводит его в терминал.
    """
    if save_results:
        filename = save_results_to_file('throughput', options, result)
        print(f"Результаты сохранены в {filename}")

    if as_json:
        print(result_to_json(result))
    else:
        print_results_to_terminal(options, result)

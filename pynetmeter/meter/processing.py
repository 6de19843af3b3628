import json
import os
import time

from pydantic import BaseModel

from pynetmeter.meter.options import Options


RESULTS_DIR = 'results'


def result_to_dict(result: BaseModel) -> dict:
    """Результат в виде словаря с именами полей как в JSON."""
    return result.model_dump(by_alias=True, mode='json')


def result_to_json(result: BaseModel, indent: int | None = 2) -> str:
    return result.model_dump_json(by_alias=True, indent=indent)


def save_results_to_file(
    meter_name: str,
    options: Options,
    result: BaseModel,
    results_dir: str = RESULTS_DIR
) -> str:
    """
    Сохранить настройки и результат измерения в JSON-файл
    `<results_dir>/<meter_name>_res-<время>.json`.

    Returns:
        путь к записанному файлу
    """
    os.makedirs(results_dir, exist_ok=True)
    current_time = time.strftime("%Y%m%d_%H%M%S", time.localtime())
    filename = os.path.join(
        results_dir, f"{meter_name}_res-{current_time}.json"
    )
    with open(filename, "w") as f:
        json.dump({
            "options": options.model_dump(by_alias=True, mode='json'),
            "result": result_to_dict(result),
        }, f, indent=2)
    return filename

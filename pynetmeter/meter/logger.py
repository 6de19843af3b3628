from dataclasses import dataclass
import logging
import os
from typing import Callable, Literal
import uuid

import colorama


# Цвет строки журнала в консоли в зависимости от уровня записи
LEVEL_COLORS = {
    logging.DEBUG: colorama.Fore.LIGHTBLACK_EX,
    logging.INFO: colorama.Fore.GREEN,
    logging.WARNING: colorama.Fore.YELLOW,
    logging.ERROR: colorama.Fore.RED + colorama.Style.BRIGHT,
    logging.CRITICAL:
        colorama.Back.RED + colorama.Fore.WHITE + colorama.Style.BRIGHT,
}


class ColoredFormatter(logging.Formatter):
    """Форматтер для консоли: строка записи целиком окрашена по уровню."""

    def format(self, record):
        line = super().format(record)
        color = LEVEL_COLORS.get(record.levelno)
        if color is None:
            return line
        return color + line + colorama.Style.RESET_ALL


# Формат записи по-умолчанию. Кроме стандартных полей в нем два поля,
# которые добавляет MeterLogger:
#
# - elapsed: секунды с начала текущего обмена (по часам измерителя)
# - runId: идентификатор запуска
#
# Пример строки в журнале:
# 0000.012345 [DEBUG   ] latency (R:972274) (base.py:_transition) - ...

METER_LOGGER_FORMAT = (
    "{elapsed:011.06f} [{levelname:8s}] {name} (R:{runId}) "
    "({filename}:{funcName}) - {message}"
)


def with_run_id(file_name: str, run_id: int) -> str:
    """
    Вставить идентификатор запуска в имя файла журнала перед расширением:
    "logs/latency.log" -> "logs/latency_123.log", "latency" -> "latency_123".
    """
    root, ext = os.path.splitext(file_name.strip())
    return f"{root}_{run_id}{ext}"


@dataclass
class MeterLoggerConfig:
    """Настройки логгера измерителей."""
    level: int = logging.INFO      # уровень журнала
    use_console: bool = True       # писать ли в консоль (stderr)
    colored_console: bool = True   # окрашивать ли консольный вывод

    # Файл журнала. Каждый запуск пишет в свой файл, к имени добавляется
    # runId (см. with_run_id). None - журнал только в консоли.
    file_name: str | None = None

    fmt: str = METER_LOGGER_FORMAT
    style: Literal['%', '{', '$'] = '{'


class MeterLogger:
    """
    Журнал измерителя.

    Обертка над стандартным логгером с именем измерителя. К каждой записи
    добавляет поля `elapsed` (секунды с начала текущего обмена, берутся из
    `time_getter`) и `runId`.

    Сообщения передаются через формат-строку, `info("sent %d", n)`, тогда
    строка строится, только если запись действительно попадет в журнал.

    Обработчики (консоль, файл) задаются в `setup()`.
    """
    def __init__(
        self,
        meter_name: str = '',
        time_getter: Callable[[], float] | None = None,
        run_id: int | None = None
    ):
        self._logger = logging.getLogger(meter_name)
        self._time_getter = time_getter or (lambda: 0.0)
        self._run_id: int = run_id or uuid.uuid4().int % 1_000_000
        self._file_name: str | None = None
        self._configured = False

    @property
    def name(self) -> str:
        return self._logger.name

    @property
    def run_id(self) -> int:
        return self._run_id

    @property
    def file_name(self) -> str | None:
        """Путь к файлу журнала этого запуска или None."""
        return self._file_name

    def set_time_getter(self, fn: Callable[[], float]) -> None:
        self._time_getter = fn

    def setup(
        self,
        config: MeterLoggerConfig | None = None,
        force_run: bool = False
    ) -> None:
        """
        Настроить обработчики журнала.

        Измеритель сам вызывает `setup()` без аргументов. Чтобы это не
        сбрасывало настройку, сделанную снаружи, повторный вызов ничего не
        делает, если не передан `force_run=True`.
        """
        if self._configured and not force_run:
            return

        config = config or MeterLoggerConfig()
        for handler in self._logger.handlers:
            handler.close()
        self._logger.handlers = []
        self._file_name = None

        if config.use_console:
            self._logger.addHandler(self._console_handler(config))
        if config.file_name is not None:
            self._file_name = with_run_id(config.file_name, self._run_id)
            self._logger.addHandler(
                self._file_handler(config, self._file_name)
            )

        self._logger.propagate = False
        self._logger.setLevel(config.level)
        self._configured = True

    @staticmethod
    def _console_handler(config: MeterLoggerConfig) -> logging.Handler:
        if config.colored_console:
            formatter = ColoredFormatter(config.fmt, style=config.style)
        else:
            formatter = logging.Formatter(config.fmt, style=config.style)
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        return handler

    @staticmethod
    def _file_handler(
        config: MeterLoggerConfig,
        file_name: str
    ) -> logging.Handler:
        dir_name = os.path.dirname(file_name)
        if dir_name:
            os.makedirs(dir_name, exist_ok=True)
        handler = logging.FileHandler(file_name, mode='w')
        handler.setFormatter(logging.Formatter(config.fmt, style=config.style))
        return handler

    def _write(self, level: int, msg, args, kwargs):
        # stacklevel=3: в записи место вызова debug()/info()/..., а не _write()
        self._logger.log(
            level, msg, *args, **kwargs,
            extra={"elapsed": self._time_getter(), "runId": self._run_id},
            stacklevel=3,
        )

    def debug(self, msg, *args, **kwargs):
        self._write(logging.DEBUG, msg, args, kwargs)

    def info(self, msg, *args, **kwargs):
        self._write(logging.INFO, msg, args, kwargs)

    def warning(self, msg, *args, **kwargs):
        self._write(logging.WARNING, msg, args, kwargs)

    def error(self, msg, *args, **kwargs):
        self._write(logging.ERROR, msg, args, kwargs)

    def is_enabled_for(self, level: int) -> bool:
        return self._logger.isEnabledFor(level)

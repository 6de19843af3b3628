class MeterError(Exception):
    """Базовое исключение для всех ошибок измерителей."""
    ...


class ConfigurationError(MeterError, ValueError):
    """
    Некорректная конфигурация: битый JSON, недопустимые значения полей,
    неизвестный транспорт или адрес, который невозможно разобрать.

    Возникает до любых операций ввода-вывода.
    """
    ...


class ConnectError(MeterError):
    """Не удалось открыть listener, принять или установить соединение."""
    ...


class TransportError(MeterError):
    """Ошибка сокета во время обмена сообщениями."""
    ...


class ProtocolViolationError(TransportError):
    """
    Прочитано или записано не msg_size байт (короткое чтение/запись),
    либо соединение закрыто посреди обмена.
    """
    def __init__(self, msg: str, expected: int = 0, actual: int = 0):
        super().__init__(msg)
        self.expected = expected
        self.actual = actual


class NoProgressError(MeterError):
    """
    До истечения таймаута не завершилось ни одного раунда (или прошедшее
    время равно нулю), поэтому средние значения не определены.
    """
    ...

import socket

from pynetmeter.meter.base import Meter, recv_exact, send_exact
from pynetmeter.meter.errors import NoProgressError, ProtocolViolationError
from pynetmeter.models.latency.objects import LatencyResult


class LatencyMeter(Meter[LatencyResult]):
    """
    Измеритель задержки (пинг-понг).

    Клиент отправляет сообщение размером msg_size и ждет, пока сервер
    вернет его обратно. Так повторяется num_msg раз или пока не истечет
    таймаут. Каждый пинг-понг считается как два полу-раунда, средняя
    задержка - время обмена, деленное на число полу-раундов.

    Таймаут проверяется только между раундами: зависшее чтение или
    запись он не прерывает.
    """
    NAME = 'latency'

    def _serve(self, conn: socket.socket) -> None:
        """
        Прочитать и вернуть обратно num_msg сообщений. Если клиент закрыл
        соединение раньше, это ошибка: сервер ждет ровно num_msg раундов.
        """
        msg_size = self.options.msg_size
        buf = bytearray(msg_size)
        for n in range(self.options.num_msg):
            try:
                recv_exact(conn, buf)
            except ProtocolViolationError as err:
                if err.actual == 0:
                    raise ProtocolViolationError(
                        f"connection closed after {n} of "
                        f"{self.options.num_msg} rounds",
                        expected=msg_size,
                        actual=0,
                    ) from err
                raise
            send_exact(conn, buf)
        self.logger.debug("echoed %d messages", self.options.num_msg)

    def _measure(self, conn: socket.socket) -> LatencyResult:
        msg_size = self.options.msg_size
        buf = bytearray(msg_size)

        start = self.now()
        deadline = start + self.options.timeout_ns
        pings_sent = 0
        for _ in range(self.options.num_msg):
            if self.now() > deadline:
                self.logger.warning(
                    "timeout reached after %d of %d pings",
                    pings_sent, self.options.num_msg
                )
                break
            send_exact(conn, buf)
            recv_exact(conn, buf)
            pings_sent += 1
        elapsed = self.now() - start

        if pings_sent == 0:
            raise NoProgressError(
                "no pings completed before the deadline "
                f"({self.options.timeout} ms)"
            )
        total_pings = pings_sent * 2
        result = LatencyResult(
            elapsed_time=elapsed,
            num_pings=total_pings,
            avg_latency=elapsed // total_pings,
        )
        self.logger.info(
            "latency client done: %d pings in %d ns, avg %d ns",
            total_pings, elapsed, result.avg_latency
        )
        return result

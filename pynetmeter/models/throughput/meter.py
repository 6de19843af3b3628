import socket

from pynetmeter.meter.base import Meter, send_exact
from pynetmeter.meter.errors import NoProgressError
from pynetmeter.models.throughput.objects import ThroughputResult


def build_result(msg_size: int, msg_sent: int, elapsed: int) -> ThroughputResult:
    """
    Посчитать производные метрики по числу отправленных сообщений и
    длительности передачи (в наносекундах).

    Raises:
        NoProgressError: если сообщений нет или длительность нулевая
    """
    if msg_sent <= 0:
        raise NoProgressError("no messages sent before the deadline")
    if elapsed <= 0:
        raise NoProgressError("elapsed time is zero, rates are undefined")
    total_data = msg_sent * msg_size
    return ThroughputResult(
        msg_size=msg_size,
        num_msg=msg_sent,
        total_data=total_data,
        elapsed=elapsed,
        throughput_mb_per_sec=total_data * 1000 / elapsed,
        throughput_bytes_per_sec=total_data * 1e9 / elapsed,
        throughput_msg_per_sec=msg_sent * 1e9 / elapsed,
    )


class ThroughputMeter(Meter[ThroughputResult]):
    """
    Измеритель пропускной способности.

    Клиент пишет в соединение num_msg сообщений размером msg_size (или
    сколько успеет до таймаута), сервер только вычитывает данные, пока
    клиент не закроет соединение. Сервер ничего не считает, чтобы не
    влиять на результат, измеренный клиентом.
    """
    NAME = 'throughput'

    def _serve(self, conn: socket.socket) -> None:
        buf = bytearray(self.options.msg_size)
        total = 0
        while True:
            n = conn.recv_into(buf)
            if n == 0:
                break
            total += n
        self.logger.debug("drained %d bytes", total)

    def _measure(self, conn: socket.socket) -> ThroughputResult:
        buf = bytes(self.options.msg_size)

        start = self.now()
        deadline = start + self.options.timeout_ns
        msg_sent = 0
        for _ in range(self.options.num_msg):
            if self.now() > deadline:
                self.logger.warning(
                    "timeout reached after %d of %d messages",
                    msg_sent, self.options.num_msg
                )
                break
            send_exact(conn, buf)
            msg_sent += 1
        elapsed = self.now() - start

        result = build_result(self.options.msg_size, msg_sent, elapsed)
        self.logger.info(
            "throughput client done: %d bytes in %d ns, %.2f MB/s",
            result.total_data, result.elapsed, result.throughput_mb_per_sec
        )
        return result

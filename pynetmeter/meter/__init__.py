from .errors import MeterError, ConfigurationError, ConnectError, \
    TransportError, ProtocolViolationError, NoProgressError

from .connection import Transport, Provisioner, split_host_port

from .options import Options, default_latency_options, \
    default_throughput_options, load_options, parse_options

from .logger import MeterLogger, MeterLoggerConfig, METER_LOGGER_FORMAT, \
    ColoredFormatter, with_run_id

from .base import Meter, MeterState, recv_exact, send_exact

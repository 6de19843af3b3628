from .meter import ThroughputMeter, build_result
from .objects import ThroughputResult

from .meter import LatencyMeter
from .objects import LatencyResult

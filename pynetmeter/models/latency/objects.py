from pydantic import BaseModel, ConfigDict, Field


class LatencyResult(BaseModel):
    """Результат измерения задержки (все времена в наносекундах)."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    elapsed_time: int = Field(
        ..., ge=0, alias='elapsedTime',
        description="Длительность обмена, нс"
    )
    num_pings: int = Field(
        ..., gt=0, alias='numPings',
        description="Число полу-раундов (2 x завершенных пинг-понгов)"
    )
    avg_latency: int = Field(
        ..., ge=0, alias='avgLatency',
        description="Средняя задержка полу-раунда (elapsed / numPings), нс"
    )

    @property
    def round_trips(self) -> int:
        """Число завершенных пинг-понгов."""
        return self.num_pings // 2

    @property
    def avg_latency_us(self) -> float:
        return self.avg_latency / 1e3

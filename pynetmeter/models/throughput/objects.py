from pydantic import BaseModel, ConfigDict, Field


class ThroughputResult(BaseModel):
    """Результат измерения пропускной способности."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    msg_size: int = Field(
        ..., gt=0, alias='msgSize', description="Размер сообщения, байт"
    )
    num_msg: int = Field(
        ..., gt=0, alias='numMsg', description="Сколько сообщений отправлено"
    )
    total_data: int = Field(
        ..., gt=0, alias='totalData', description="Всего отправлено байт"
    )
    elapsed: int = Field(
        ..., gt=0, alias='elapsed', description="Длительность передачи, нс"
    )
    throughput_mb_per_sec: float = Field(
        ..., alias='throughputMBPerSec', description="Пропускная способность, МБ/с"
    )
    throughput_bytes_per_sec: float = Field(
        ..., alias='throughputBytesPerSec',
        description="Пропускная способность, байт/с"
    )
    throughput_msg_per_sec: float = Field(
        ..., alias='throughputMsgPerSec', description="Сообщений в секунду"
    )

    @property
    def throughput_mbit_per_sec(self) -> float:
        return self.throughput_bytes_per_sec * 8 / 1e6

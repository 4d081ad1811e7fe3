import threading
import time
from dataclasses import dataclass, field

# Limites de SQLite INTEGER (int64) y de threading para las esperas
MAX_TIMESTAMP_MS = 2**63 - 1
MAX_INTERVAL_SECONDS = min(int(threading.TIMEOUT_MAX), 365 * 24 * 60 * 60)
MAX_KEEP_HORIZON_SECONDS = MAX_TIMESTAMP_MS // 1000


def now_ms() -> int:
    return time.time_ns() // 1_000_000


def _require_positive_int(name: str, value, maximum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} debe ser entero, recibido {value!r}")
    if value <= 0:
        raise ValueError(f"{name} debe ser positivo, recibido {value}")
    if value > maximum:
        raise ValueError(f"{name} no puede superar {maximum}, recibido {value}")


@dataclass(frozen=True)
class RecorderConfig:
    """Cadencia de muestreo y horizonte de retencion, ambos en segundos."""

    interval_seconds: int
    keep_horizon_seconds: int

    def __post_init__(self) -> None:
        _require_positive_int("interval_seconds", self.interval_seconds, MAX_INTERVAL_SECONDS)
        _require_positive_int("keep_horizon_seconds", self.keep_horizon_seconds,
                              MAX_KEEP_HORIZON_SECONDS)

    def to_dict(self) -> dict:
        return {
            "interval_seconds": self.interval_seconds,
            "keep_horizon_seconds": self.keep_horizon_seconds,
        }


@dataclass(frozen=True)
class Reading:
    sensor_name: str
    value: float

    def to_dict(self) -> dict:
        return {"sensor_name": self.sensor_name, "value": self.value}


@dataclass(frozen=True)
class ReadingBatch:
    """Lecturas de un mismo tick; todas comparten una marca en milisegundos epoch."""

    capture_time: int
    readings: tuple[Reading, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "readings", tuple(self.readings))
        seen = set()
        for reading in self.readings:
            if reading.sensor_name in seen:
                raise ValueError(f"Sensor repetido en el lote: {reading.sensor_name}")
            seen.add(reading.sensor_name)

    def to_dict(self) -> dict:
        return {
            "capture_time": self.capture_time,
            "readings": [r.to_dict() for r in self.readings],
        }

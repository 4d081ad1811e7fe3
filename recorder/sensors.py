import logging
import tomllib
from dataclasses import dataclass
from pathlib import Path

from recorder.models import Reading

logger = logging.getLogger(__name__)

# Los sensores 1-wire exponen la temperatura en milesimas de grado
MILLIDEGREES = 1000.0


class SensorConfigError(Exception):
    """No se pudo leer o interpretar el archivo de sensores."""


class SourceReadError(Exception):
    pass


class SourceParseError(Exception):
    pass


@dataclass(frozen=True)
class Sensor:
    name: str
    path: str

    def to_dict(self) -> dict:
        return {"name": self.name, "path": self.path}


def load_sensor_config(config_path: Path | str) -> list[Sensor]:
    """Lee la lista de sensores de un TOML con tablas ``[[sensors]]``."""
    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except OSError as e:
        raise SensorConfigError(f"No se pudo abrir {config_path}: {e}") from e
    except (tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
        raise SensorConfigError(f"TOML invalido en {config_path}: {e}") from e

    entries = data.get("sensors", [])
    if not isinstance(entries, list):
        raise SensorConfigError(f"'sensors' debe ser una lista en {config_path}")

    sensors = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise SensorConfigError(f"Entrada de sensor invalida: {entry!r}")
        name, path = entry.get("name"), entry.get("path")
        if not isinstance(name, str) or not isinstance(path, str):
            raise SensorConfigError(f"Cada sensor necesita 'name' y 'path': {entry!r}")
        sensors.append(Sensor(name=name, path=path))
    return sensors


class TemperatureReader:
    def __init__(self, config_path: Path | str):
        self.config_path = Path(config_path)

    def read_config(self) -> list[Sensor]:
        return load_sensor_config(self.config_path)

    def read(self, sensors: list[Sensor] | None = None) -> list[Reading]:
        """Lee todos los sensores; los que fallan se registran y se omiten.

        Solo falla (SensorConfigError) si no se puede cargar la lista de sensores.
        """
        if sensors is None:
            sensors = self.read_config()

        readings = []
        errors = []
        seen = set()
        for sensor in sensors:
            if sensor.name in seen:
                logger.warning("Sensor '%s' duplicado en la configuracion, se ignora", sensor.name)
                continue
            seen.add(sensor.name)
            try:
                readings.append(Reading(sensor.name, self.read_sensor(sensor)))
            except (SourceReadError, SourceParseError) as e:
                errors.append(e)

        if errors:
            logger.error("Error leyendo %d sensor(es): %s", len(errors), "; ".join(map(str, errors)))
        return readings

    @staticmethod
    def read_sensor(sensor: Sensor) -> float:
        try:
            content = Path(sensor.path).read_text(encoding="utf-8")
        except OSError as e:
            raise SourceReadError(f"{sensor.name}: no se pudo leer {sensor.path} ({e})") from e
        except UnicodeDecodeError as e:
            raise SourceReadError(f"{sensor.name}: contenido no UTF-8 en {sensor.path}") from e

        raw = content.strip()
        try:
            value = int(raw)
        except ValueError as e:
            raise SourceParseError(f"{sensor.name}: valor invalido {raw!r}") from e
        return value / MILLIDEGREES

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

from db.database import Database
from recorder.models import RecorderConfig
from recorder.scheduler import RecorderScheduler, SchedulerStartError
from recorder.sensors import TemperatureReader

logger = logging.getLogger(__name__)


@dataclass
class ServiceContext:
    """Lo que comparten las rutas HTTP y el grabador."""

    store: Database
    reader: TemperatureReader
    scheduler: RecorderScheduler
    _config_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def apply_config(self, new: RecorderConfig) -> RecorderConfig:
        """Guarda la configuracion y reinicia el grabador con ella.

        Si el reinicio falla el grabador queda detenido y se propaga
        SchedulerStartError; la configuracion ya quedo guardada.
        """
        with self._config_lock:
            saved = self.store.save_config(new)
            self.scheduler.stop()
            try:
                self.scheduler.start(saved)
            except SchedulerStartError as e:
                logger.error("El grabador quedo DETENIDO tras cambiar la configuracion: %s", e)
                raise
        return saved

    def shutdown(self):
        self.scheduler.stop()
        self.store.close()


def build_context(db_path: Path | str, sensor_config_path: Path | str,
                  default_config: RecorderConfig | None = None) -> ServiceContext:
    store = Database(db_path, default_config=default_config)
    reader = TemperatureReader(sensor_config_path)
    scheduler = RecorderScheduler(store, reader)
    return ServiceContext(store=store, reader=reader, scheduler=scheduler)

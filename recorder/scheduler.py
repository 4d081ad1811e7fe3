import logging
import threading
import time
from dataclasses import dataclass, field

from db.database import Database, DeleteError, StoreError, WriteError
from recorder.models import ReadingBatch, RecorderConfig, now_ms
from recorder.sensors import SensorConfigError, TemperatureReader

logger = logging.getLogger(__name__)


class SchedulerStartError(Exception):
    """No se pudo armar el temporizador; el grabador queda detenido."""


class RepeatingTimer:
    """Llama a ``function`` cada ``interval`` segundos en un hilo propio.

    ``cancel()`` es sincrono: al volver no hay ninguna llamada en curso y no
    empezara ninguna otra.
    """

    def __init__(self, interval: float, function, name: str = "recorder-cadence"):
        if interval <= 0:
            raise ValueError(f"El intervalo debe ser positivo, recibido {interval}")
        if interval > threading.TIMEOUT_MAX:
            raise ValueError(f"El intervalo supera threading.TIMEOUT_MAX: {interval}")
        self.interval = interval
        self.function = function
        self._stopped = threading.Event()
        self._run_lock = threading.Lock()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self):
        self._thread.start()

    def _run(self):
        next_run = time.monotonic() + self.interval
        while not self._stopped.wait(max(0.0, next_run - time.monotonic())):
            with self._run_lock:
                if self._stopped.is_set():
                    break
                try:
                    self.function()
                except Exception:
                    logger.exception("Error no controlado en el tick")

            next_run += self.interval
            now = time.monotonic()
            if next_run < now:
                missed = int((now - next_run) // self.interval) + 1
                logger.warning("Tick demasiado lento, se saltan %d ejecuciones", missed)
                next_run += missed * self.interval

    def cancel(self):
        self._stopped.set()
        if threading.current_thread() is self._thread:
            return
        with self._run_lock:
            pass
        if self._thread.is_alive():
            self._thread.join()

    def is_alive(self) -> bool:
        return self._thread.is_alive()


@dataclass(frozen=True)
class TickResult:
    capture_time: int
    written: int = 0
    pruned: int = 0
    errors: tuple[str, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {
            "capture_time": self.capture_time,
            "written": self.written,
            "pruned": self.pruned,
            "errors": list(self.errors),
        }


class RecorderScheduler:
    def __init__(self, store: Database, reader: TemperatureReader,
                 clock=now_ms, timer_factory=RepeatingTimer):
        self._store = store
        self._reader = reader
        self._clock = clock
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._timer = None
        self._config: RecorderConfig | None = None
        self._last_capture_time = 0
        self._last_tick: TickResult | None = None

    @property
    def is_running(self) -> bool:
        return self._timer is not None

    @property
    def config(self) -> RecorderConfig | None:
        return self._config

    @property
    def last_tick(self) -> TickResult | None:
        return self._last_tick

    def start(self, config: RecorderConfig):
        with self._lock:
            self._stop_locked()

            try:
                self._store.ping()
            except StoreError as e:
                raise SchedulerStartError(f"Base de datos no disponible: {e}") from e

            try:
                timer = self._timer_factory(config.interval_seconds, lambda: self.tick(config))
                timer.start()
            except (RuntimeError, ValueError) as e:
                raise SchedulerStartError(f"No se pudo armar el temporizador: {e}") from e

            self._timer = timer
            self._config = config

        logger.info(
            "Grabador iniciado: cada %ds, se conservan %ds",
            config.interval_seconds, config.keep_horizon_seconds,
        )

    def stop(self):
        with self._lock:
            stopped = self._stop_locked()
        if stopped:
            logger.info("Grabador detenido")

    def _stop_locked(self) -> bool:
        if self._timer is None:
            return False
        timer, self._timer = self._timer, None
        self._config = None
        timer.cancel()
        return True

    def _capture_time(self) -> int:
        now = self._clock()
        if now < self._last_capture_time:
            logger.warning("El reloj retrocedio %d ms, se reutiliza la marca anterior",
                           self._last_capture_time - now)
            now = self._last_capture_time
        self._last_capture_time = now
        return now

    def tick(self, config: RecorderConfig) -> TickResult:
        """Una muestra: leer sensores, guardar el lote y purgar lo antiguo.

        Nunca lanza; cada fallo se registra y el siguiente tick sigue igual.
        """
        now = self._capture_time()
        written = 0
        pruned = 0
        errors = []

        try:
            readings = self._reader.read()
        except SensorConfigError as e:
            logger.error("Error leyendo sensores: %s", e)
            errors.append(str(e))
            readings = []

        if readings:
            try:
                batch = ReadingBatch(now, readings)
                logger.debug("Sensores leidos: %s", batch)
                written = self._store.save_batch(batch)
                logger.debug("Guardadas %d lecturas en %d", written, now)
            except (ValueError, WriteError) as e:
                logger.error("Error guardando temperaturas: %s", e)
                errors.append(str(e))
        elif not errors:
            logger.warning("Ningun sensor devolvio lectura en %d", now)

        try:
            pruned = self._store.prune_older_than(now, config.keep_horizon_seconds)
        except DeleteError as e:
            logger.error("Error borrando temperaturas antiguas: %s", e)
            errors.append(str(e))

        result = TickResult(now, written, pruned, tuple(errors))
        self._last_tick = result
        return result

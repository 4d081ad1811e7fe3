import logging
import sqlite3
import threading
from itertools import groupby
from pathlib import Path

import config
from db.models import SCHEMA_SQL, SEED_CONFIG_SQL, UPSERT_READING_SQL
from recorder.models import Reading, ReadingBatch, RecorderConfig

logger = logging.getLogger(__name__)

MEMORY = ":memory:"


class StoreError(Exception):
    """Base de los errores del almacenamiento."""


class InitError(StoreError):
    """No se pudo abrir la base o crear el esquema. Fatal al arrancar."""


class ConfigMissing(StoreError):
    """No hay ninguna fila en recorder_config (p.ej. un reemplazo a medias)."""


class ReadError(StoreError):
    pass


class WriteError(StoreError):
    pass


class DeleteError(StoreError):
    pass


class Database:
    """Almacen de lecturas y de la configuracion del grabador.

    Una sola conexion SQLite compartida entre hilos; cada operacion toma
    ``self._lock`` durante toda su duracion.
    """

    def __init__(self, db_path: Path | str, default_config: RecorderConfig | None = None):
        self.db_path = db_path
        self.default_config = default_config or RecorderConfig(
            config.DEFAULT_INTERVAL_SECONDS, config.DEFAULT_KEEP_HORIZON_SECONDS,
        )
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()

    def initialize(self) -> None:
        with self._lock:
            try:
                if self._conn is None:
                    self._conn = self._open()
                self._conn.executescript(SCHEMA_SQL)
                with self._conn:
                    self._conn.execute(
                        SEED_CONFIG_SQL,
                        (self.default_config.interval_seconds,
                         self.default_config.keep_horizon_seconds),
                    )
            except (sqlite3.Error, OSError) as e:
                raise InitError(f"No se pudo inicializar la base {self.db_path}: {e}") from e
        logger.info("Base de datos lista en %s", self.db_path)

    def _open(self) -> sqlite3.Connection:
        if str(self.db_path) != MEMORY:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _get_conn(self, error_cls=ReadError) -> sqlite3.Connection:
        if self._conn is None:
            raise error_cls("La base de datos no esta inicializada")
        return self._conn

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def ping(self) -> None:
        with self._lock:
            try:
                self._get_conn().execute("SELECT 1").fetchone()
            except sqlite3.Error as e:
                raise ReadError(f"La base de datos no responde: {e}") from e

    def size_bytes(self) -> int:
        if str(self.db_path) == MEMORY:
            return 0
        path = Path(self.db_path)
        wal = path.with_name(path.name + "-wal")
        try:
            size = path.stat().st_size
            if wal.exists():
                size += wal.stat().st_size
            return size
        except OSError as e:
            raise ReadError(f"No se pudo obtener el tamano de {self.db_path}: {e}") from e

    # -- Configuracion --

    def load_config(self) -> RecorderConfig:
        with self._lock:
            try:
                rows = self._get_conn().execute(
                    "SELECT interval_seconds, keep_horizon_seconds "
                    "FROM recorder_config ORDER BY rowid"
                ).fetchall()
            except sqlite3.Error as e:
                raise ReadError(f"Error leyendo recorder_config: {e}") from e

        if not rows:
            raise ConfigMissing("No hay configuracion del grabador guardada")
        if len(rows) > 1:
            logger.warning("recorder_config tiene %d filas, se usa la primera", len(rows))
        row = rows[0]
        try:
            return RecorderConfig(row["interval_seconds"], row["keep_horizon_seconds"])
        except ValueError as e:
            raise ReadError(f"Configuracion guardada invalida: {e}") from e

    def config_row_count(self) -> int:
        with self._lock:
            try:
                row = self._get_conn().execute("SELECT COUNT(*) FROM recorder_config").fetchone()
            except sqlite3.Error as e:
                raise ReadError(f"Error contando recorder_config: {e}") from e
        return row[0]

    def save_config(self, new: RecorderConfig) -> RecorderConfig:
        with self._lock:
            conn = self._get_conn(WriteError)
            try:
                with conn:
                    conn.execute("DELETE FROM recorder_config")
                    conn.execute(
                        "INSERT INTO recorder_config (interval_seconds, keep_horizon_seconds) "
                        "VALUES (?, ?)",
                        (new.interval_seconds, new.keep_horizon_seconds),
                    )
            except (sqlite3.Error, OverflowError) as e:
                raise WriteError(f"Error guardando la configuracion: {e}") from e
        return new

    # -- Lecturas --

    def save_batch(self, batch: ReadingBatch) -> int:
        rows = [
            (batch.capture_time, r.sensor_name, round(r.value, 2))
            for r in batch.readings
        ]
        with self._lock:
            conn = self._get_conn(WriteError)
            try:
                with conn:
                    conn.executemany(UPSERT_READING_SQL, rows)
            except (sqlite3.Error, OverflowError) as e:
                raise WriteError(
                    f"Error guardando el lote {batch.capture_time}: {e}"
                ) from e
        return len(rows)

    def load_batches_since(self, since_ms: int) -> list[ReadingBatch]:
        with self._lock:
            try:
                rows = self._get_conn().execute(
                    "SELECT capture_time, sensor_name, value FROM readings "
                    "WHERE capture_time >= ? ORDER BY capture_time, rowid",
                    (since_ms,),
                ).fetchall()
            except (sqlite3.Error, OverflowError) as e:
                raise ReadError(f"Error leyendo lecturas desde {since_ms}: {e}") from e
        return [
            ReadingBatch(capture_time, [Reading(r["sensor_name"], r["value"]) for r in group])
            for capture_time, group in groupby(rows, key=lambda r: r["capture_time"])
        ]

    def load_latest_batch(self) -> ReadingBatch | None:
        with self._lock:
            try:
                conn = self._get_conn()
                latest = conn.execute("SELECT MAX(capture_time) FROM readings").fetchone()[0]
                if latest is None:
                    return None
                rows = conn.execute(
                    "SELECT sensor_name, value FROM readings "
                    "WHERE capture_time = ? ORDER BY rowid",
                    (latest,),
                ).fetchall()
            except sqlite3.Error as e:
                raise ReadError(f"Error leyendo la ultima lectura: {e}") from e
        return ReadingBatch(latest, [Reading(r["sensor_name"], r["value"]) for r in rows])

    def prune_older_than(self, now_ms: int, keep_horizon_seconds: int) -> int:
        cutoff = now_ms - keep_horizon_seconds * 1000
        with self._lock:
            conn = self._get_conn(DeleteError)
            try:
                with conn:
                    cursor = conn.execute(
                        "DELETE FROM readings WHERE capture_time < ?", (cutoff,)
                    )
            except (sqlite3.Error, OverflowError) as e:
                raise DeleteError(f"Error borrando lecturas anteriores a {cutoff}: {e}") from e
        if cursor.rowcount > 0:
            logger.debug("Borradas %d lecturas anteriores a %d", cursor.rowcount, cutoff)
        return cursor.rowcount

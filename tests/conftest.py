import sqlite3
import threading
import time

import pytest

from db.database import Database
from recorder.models import Reading, RecorderConfig
from recorder.sensors import SensorConfigError


class FakeReader:
    """Fuente de lecturas en memoria que cuenta ejecuciones simultaneas."""

    def __init__(self, readings=None, fail=False, delay=0.0):
        self.readings = readings if readings is not None else [Reading("boiler", 55.0)]
        self.fail = fail
        self.delay = delay
        self.calls = 0
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def read(self, sensors=None):
        with self._lock:
            self.calls += 1
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                time.sleep(self.delay)
            if self.fail:
                raise SensorConfigError("Sensor.toml no encontrado")
            return list(self.readings)
        finally:
            with self._lock:
                self.active -= 1

    def read_config(self):
        return []


class FakeTimer:
    """Temporizador que no arranca ningun hilo; el test dispara los ticks."""

    instances = []

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False
        FakeTimer.instances.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if self.started and not self.cancelled:
            self.function()


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "boiler-watch.db"


@pytest.fixture
def store(db_path):
    db = Database(db_path, default_config=RecorderConfig(15, 30 * 24 * 60 * 60))
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def raw_exec(db_path):
    """Ejecuta SQL con una conexion aparte, saltandose la API del almacen."""
    def _exec(sql, params=()):
        conn = sqlite3.connect(str(db_path))
        try:
            with conn:
                conn.execute(sql, params)
        finally:
            conn.close()
    return _exec


@pytest.fixture(autouse=True)
def _reset_fake_timers():
    FakeTimer.instances.clear()
    yield
    FakeTimer.instances.clear()

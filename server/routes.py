import logging

from fastapi import APIRouter, HTTPException, Path
from pydantic import BaseModel, Field

from context import ServiceContext
from db.database import StoreError
from recorder.models import (
    MAX_INTERVAL_SECONDS, MAX_KEEP_HORIZON_SECONDS, MAX_TIMESTAMP_MS, RecorderConfig,
)
from recorder.scheduler import SchedulerStartError
from recorder.sensors import SensorConfigError

logger = logging.getLogger(__name__)


class RecorderConfigBody(BaseModel):
    interval_seconds: int = Field(gt=0, le=MAX_INTERVAL_SECONDS)
    keep_horizon_seconds: int = Field(gt=0, le=MAX_KEEP_HORIZON_SECONDS)


def _internal_error(message: str, error: Exception) -> HTTPException:
    logger.error("%s: %s", message, error)
    return HTTPException(500, message)


def create_router(ctx: ServiceContext) -> APIRouter:
    router = APIRouter()

    # -- Temperaturas --

    @router.get("/temperatures/last")
    def get_last_temperatures():
        try:
            batch = ctx.store.load_latest_batch()
        except StoreError as e:
            raise _internal_error("Error accediendo a la base de datos", e)

        if batch is None:
            raise HTTPException(404, "No se encontraron temperaturas")
        return batch.to_dict()

    @router.get("/temperatures/since/{start_time}")
    def get_temperatures_since(start_time: int = Path(ge=0, le=MAX_TIMESTAMP_MS)):
        try:
            batches = ctx.store.load_batches_since(start_time)
        except StoreError as e:
            raise _internal_error("Error accediendo a la base de datos", e)
        return [b.to_dict() for b in batches]

    # -- Configuracion --

    @router.get("/config")
    def get_config():
        try:
            recorder_config = ctx.store.load_config()
        except StoreError as e:
            raise _internal_error("Error cargando la configuracion del grabador", e)
        return recorder_config.to_dict()

    @router.post("/config")
    def save_config(body: RecorderConfigBody):
        new = RecorderConfig(body.interval_seconds, body.keep_horizon_seconds)
        try:
            saved = ctx.apply_config(new)
        except StoreError as e:
            raise _internal_error("Error guardando la configuracion del grabador", e)
        except SchedulerStartError as e:
            raise _internal_error("Configuracion guardada pero el grabador no pudo reiniciarse", e)
        return saved.to_dict()

    # -- Salud --

    @router.get("/health")
    def get_health():
        try:
            sensors = ctx.reader.read_config()
        except SensorConfigError as e:
            raise _internal_error("Error leyendo la configuracion de sensores", e)

        try:
            database_size_bytes = ctx.store.size_bytes()
        except StoreError as e:
            raise _internal_error("Error obteniendo el tamano de la base de datos", e)

        scheduler = ctx.scheduler
        active = scheduler.config
        last_tick = scheduler.last_tick
        return {
            "sensor_config": {"sensors": [s.to_dict() for s in sensors]},
            "database_size_bytes": database_size_bytes,
            "recorder_running": scheduler.is_running,
            "recorder_config": active.to_dict() if active else None,
            "last_tick": last_tick.to_dict() if last_tick else None,
        }

    return router

import logging
import sys

import uvicorn

import config
from context import build_context
from db.database import StoreError
from recorder.scheduler import SchedulerStartError
from server.app import create_app

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("boiler_watch")


def main():
    ctx = build_context(config.DB_PATH, config.SENSOR_CONFIG_PATH)

    try:
        ctx.store.initialize()
        recorder_config = ctx.store.load_config()
    except StoreError as e:
        logger.error("No se pudo preparar la base de datos: %s", e)
        sys.exit(1)

    try:
        ctx.scheduler.start(recorder_config)
    except SchedulerStartError as e:
        logger.error("No se pudo iniciar el grabador: %s", e)
        ctx.store.close()
        sys.exit(1)

    app = create_app(ctx)

    logger.info("Boiler Watch iniciado en http://%s:%d", config.HOST, config.PORT)
    try:
        uvicorn.run(app, host=config.HOST, port=config.PORT, log_level="warning")
    finally:
        logger.info("Cerrando Boiler Watch...")
        ctx.shutdown()


if __name__ == "__main__":
    main()

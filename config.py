import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Rutas
BASE_DIR = Path(__file__).parent
DATA_DIR = BASE_DIR / "data"
DB_PATH = Path(os.getenv("BOILERWATCH_DB_PATH", str(DATA_DIR / "boiler-watch.db")))
SENSOR_CONFIG_PATH = Path(os.getenv("BOILERWATCH_SENSOR_CONFIG", str(BASE_DIR / "Sensor.toml")))

# Servidor
HOST = os.getenv("BOILERWATCH_HOST", "127.0.0.1")
PORT = int(os.getenv("BOILERWATCH_PORT", "8000"))

# Logging
LOG_LEVEL = os.getenv("BOILERWATCH_LOG_LEVEL", "INFO")

# Configuracion inicial del grabador (se inserta solo si la tabla esta vacia)
DEFAULT_INTERVAL_SECONDS = 15
DEFAULT_KEEP_HORIZON_SECONDS = 30 * 24 * 60 * 60  # 30 dias

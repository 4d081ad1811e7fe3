SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS recorder_config (
    interval_seconds     INTEGER NOT NULL CHECK (interval_seconds > 0),
    keep_horizon_seconds INTEGER NOT NULL CHECK (keep_horizon_seconds > 0)
);

CREATE TABLE IF NOT EXISTS readings (
    capture_time INTEGER NOT NULL,  -- epoch en milisegundos
    sensor_name  TEXT NOT NULL,
    value        REAL NOT NULL,
    UNIQUE (capture_time, sensor_name)
);

CREATE INDEX IF NOT EXISTS idx_readings_capture_time ON readings (capture_time);
"""

SEED_CONFIG_SQL = """
INSERT INTO recorder_config (interval_seconds, keep_horizon_seconds)
SELECT ?, ?
WHERE NOT EXISTS (SELECT 1 FROM recorder_config)
"""

UPSERT_READING_SQL = """
INSERT INTO readings (capture_time, sensor_name, value) VALUES (?, ?, ?)
ON CONFLICT (capture_time, sensor_name) DO UPDATE SET value = excluded.value
"""

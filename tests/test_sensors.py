import logging

import pytest

from recorder.models import Reading
from recorder.sensors import (
    Sensor, SensorConfigError, SourceParseError, SourceReadError,
    TemperatureReader, load_sensor_config,
)


def _write_sensor_config(path, sensors):
    lines = []
    for name, sensor_path in sensors:
        lines += ["[[sensors]]", f'name = "{name}"', f'path = "{sensor_path}"', ""]
    path.write_text("\n".join(lines), encoding="utf-8")
    return path


@pytest.fixture
def sensor_dir(tmp_path):
    d = tmp_path / "w1"
    d.mkdir()
    return d


def test_load_sensor_config(tmp_path):
    cfg = _write_sensor_config(tmp_path / "Sensor.toml", [("boiler", "/a"), ("return", "/b")])
    assert load_sensor_config(cfg) == [Sensor("boiler", "/a"), Sensor("return", "/b")]


def test_load_sensor_config_without_sensors_is_empty(tmp_path):
    cfg = tmp_path / "Sensor.toml"
    cfg.write_text("", encoding="utf-8")
    assert load_sensor_config(cfg) == []


@pytest.mark.parametrize("content", [
    "[[sensors]\nname = 'x'",
    "[[sensors]]\nname = 'boiler'\n",
    "sensors = 'boiler'\n",
])
def test_invalid_sensor_config_raises(tmp_path, content):
    cfg = tmp_path / "Sensor.toml"
    cfg.write_text(content, encoding="utf-8")
    with pytest.raises(SensorConfigError):
        load_sensor_config(cfg)


def test_missing_sensor_config_raises(tmp_path):
    with pytest.raises(SensorConfigError):
        load_sensor_config(tmp_path / "missing.toml")


def test_read_sensor_scales_millidegrees(sensor_dir):
    (sensor_dir / "boiler").write_text("55000\n")
    (sensor_dir / "room").write_text("21437")
    assert TemperatureReader.read_sensor(Sensor("boiler", str(sensor_dir / "boiler"))) == 55.0
    assert TemperatureReader.read_sensor(Sensor("room", str(sensor_dir / "room"))) == 21.437


def test_read_sensor_errors_are_typed(sensor_dir):
    (sensor_dir / "bad").write_text("not-a-number\n")
    with pytest.raises(SourceReadError):
        TemperatureReader.read_sensor(Sensor("gone", str(sensor_dir / "gone")))
    with pytest.raises(SourceParseError):
        TemperatureReader.read_sensor(Sensor("bad", str(sensor_dir / "bad")))


def test_failed_sensor_is_excluded_from_readings(tmp_path, sensor_dir, caplog):
    (sensor_dir / "boiler").write_text("55000\n")
    cfg = _write_sensor_config(tmp_path / "Sensor.toml", [
        ("boiler", sensor_dir / "boiler"),
        ("return", sensor_dir / "missing"),
    ])

    with caplog.at_level(logging.ERROR, logger="recorder.sensors"):
        readings = TemperatureReader(cfg).read()

    assert readings == [Reading("boiler", 55.0)]
    assert "return" in caplog.text


def test_all_sensors_failing_gives_empty_list(sensor_dir):
    (sensor_dir / "bad").write_text("??")
    sensors = [Sensor("bad", str(sensor_dir / "bad")), Sensor("gone", str(sensor_dir / "gone"))]
    assert TemperatureReader("unused.toml").read(sensors) == []


def test_duplicate_sensor_names_are_read_once(sensor_dir):
    (sensor_dir / "a").write_text("10000")
    (sensor_dir / "b").write_text("20000")
    sensors = [Sensor("boiler", str(sensor_dir / "a")), Sensor("boiler", str(sensor_dir / "b"))]
    assert TemperatureReader("unused.toml").read(sensors) == [Reading("boiler", 10.0)]


def test_read_without_config_file_fails_whole_read(tmp_path):
    with pytest.raises(SensorConfigError):
        TemperatureReader(tmp_path / "missing.toml").read()


def test_non_utf8_sensor_file_is_excluded(sensor_dir):
    (sensor_dir / "boiler").write_text("55000\n")
    (sensor_dir / "garbled").write_bytes(b"\xff\xfe")
    sensors = [Sensor("boiler", str(sensor_dir / "boiler")),
               Sensor("garbled", str(sensor_dir / "garbled"))]

    assert TemperatureReader("unused.toml").read(sensors) == [Reading("boiler", 55.0)]
    with pytest.raises(SourceReadError):
        TemperatureReader.read_sensor(sensors[1])


def test_non_utf8_sensor_config_raises_config_error(tmp_path):
    cfg = tmp_path / "Sensor.toml"
    cfg.write_bytes(b"\xff\xfe")
    with pytest.raises(SensorConfigError):
        load_sensor_config(cfg)
    with pytest.raises(SensorConfigError):
        TemperatureReader(cfg).read()

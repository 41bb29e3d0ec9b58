import json
from pathlib import Path
from typing import Any

import pytest

from rtsp_relay.common.errors import ConfigError, ErrorCode
from rtsp_relay.interface.config.loader import ConfigLoader


def camera(name: str = "kamera-2", **overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "name": name,
        "streamUrl": "rtsp://192.167.0.4:1554/live/1",
        "outputUrl": f"http://127.0.0.1:8081/{name}",
        "ffmpegOptions": {
            "-r": 60,
            "-vf": "scale=1920:1080",
            "-b:v": "1024k",
            "-codec:v": "mpeg1video",
            "-stats": "",
            "-fflags": "nobuffer",
        },
        "maxRetries": 20,
        "retryDelay": 5000,
        "watchdogTimeout": 10000,
        "watchdogCheckInterval": 3000,
    }
    data.update(overrides)
    return data


def write_config(tmp_path: Path, data: Any) -> Path:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestLoadFromFile:
    def test_loads_camel_case_keys(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, {"streams": [camera()]})
        config = ConfigLoader().load_from_file(path)

        stream = config.streams[0]
        assert stream.source_url == "rtsp://192.167.0.4:1554/live/1"
        assert stream.max_retries == 20
        assert stream.retry_delay_ms == 5000
        assert stream.watchdog_check_interval_ms == 3000
        assert list(stream.ffmpeg_options) == ["-r", "-vf", "-b:v", "-codec:v", "-stats", "-fflags"]

    def test_accepts_snake_case_keys(self) -> None:
        config = ConfigLoader().load_from_dict({
            "streams": [{
                "name": "kamera-2",
                "source_url": "rtsp://cam/live",
                "output_url": "http://127.0.0.1:8081/kamera-2",
                "watchdog_timeout_ms": 0,
            }],
        })
        assert config.streams[0].watchdog_timeout_ms == 0
        assert config.streams[0].max_retries == 10

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader().load_from_file(tmp_path / "missing.json")
        assert exc_info.value.code == ErrorCode.CONFIG_NOT_FOUND

    def test_default_path(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, {"streams": []})
        config = ConfigLoader(default_path=str(path)).load_from_file()
        assert config.streams == []
        assert not config.database.enabled

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text("{ streams: [", encoding="utf-8")
        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader().load_from_file(path)
        assert exc_info.value.code == ErrorCode.CONFIG_PARSE_ERROR

    def test_top_level_must_be_object(self, tmp_path: Path) -> None:
        path = write_config(tmp_path, [camera()])
        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader().load_from_file(path)
        assert exc_info.value.code == ErrorCode.CONFIG_PARSE_ERROR


class TestValidation:
    @pytest.mark.parametrize(
        "overrides",
        [
            {"maxRetries": -1},
            {"retryDelay": 0},
            {"watchdogTimeout": -5},
            {"watchdogCheckInterval": 0},
            {"streamUrl": ""},
            {"rtspTransport": "http"},
            {"ffmpegOptions": {"r": 60}},
            {"ffmpegOptions": {"-vf": ["scale=1280:720"]}},
        ],
    )
    def test_rejects_invalid_stream(self, overrides: dict[str, Any]) -> None:
        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader().load_from_dict({"streams": [camera(**overrides)]})
        assert exc_info.value.code == ErrorCode.CONFIG_INVALID

    def test_rejects_duplicate_names(self) -> None:
        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader().load_from_dict({"streams": [camera(), camera()]})
        assert exc_info.value.code == ErrorCode.CONFIG_INVALID

    def test_database_requires_url(self) -> None:
        with pytest.raises(ConfigError):
            ConfigLoader().load_from_dict({"database": {"enabled": True}})

    def test_database_table_name_is_checked(self) -> None:
        with pytest.raises(ConfigError):
            ConfigLoader().load_from_dict(
                {"database": {"url": "sqlite://", "table": "bwcam; DROP TABLE bwcam"}}
            )

    def test_database_output_template(self) -> None:
        config = ConfigLoader().load_from_dict({"database": {"url": "sqlite://"}})
        assert config.database.output_url_template == "http://127.0.0.1:8081/{name}"

        with pytest.raises(ConfigError):
            ConfigLoader().load_from_dict(
                {"database": {"url": "sqlite://", "output_url_template": "http://relay:8081/"}}
            )

    def test_log_level_is_normalized(self) -> None:
        config = ConfigLoader().load_from_dict({"observability": {"log_level": "debug"}})
        assert config.observability.log_level == "DEBUG"


class TestToDomainStreams:
    def test_converts_streams(self) -> None:
        loader = ConfigLoader()
        config = loader.load_from_dict({
            "streams": [camera("kamera-1"), camera("kamera-2", enabled=False)],
        })

        streams = loader.to_domain_streams(config)

        assert [s.name for s in streams] == ["kamera-1", "kamera-2"]
        assert streams[0].max_retries == 20
        assert streams[0].source_endpoint.port == 1554
        assert streams[0].ffmpeg_options["-stats"] == ""
        assert not streams[1].enabled

    def test_invalid_locator_is_config_error(self) -> None:
        loader = ConfigLoader()
        config = loader.load_from_dict({"streams": [camera(streamUrl="192.167.0.4/live")]})

        with pytest.raises(ConfigError) as exc_info:
            loader.to_domain_streams(config)
        assert exc_info.value.code == ErrorCode.CONFIG_INVALID
        assert exc_info.value.field_name == "kamera-2"

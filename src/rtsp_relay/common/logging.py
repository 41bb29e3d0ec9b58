"""
구조화 로깅 모듈

loguru 기반 로깅 설정과 스트림 컨텍스트가 바인딩된 로거를 제공합니다.

주요 기능:
- JSON 형식 출력 (운영 환경, orjson)
- 컬러 콘솔 출력 (개발 환경)
- 스트림 이름(stream_id) 컨텍스트 바인딩
"""

import os
import sys
from functools import lru_cache
from typing import Any

from loguru import logger


# JSON 출력 시 앞쪽에 고정으로 배치할 필드
_CONTEXT_KEYS = ("stream_id", "component")


def _json_formatter(record: dict[str, Any]) -> str:
    """
    JSON 형식의 로그 포맷터

    loguru 포맷 문자열로 해석되지 않도록 직렬화 결과는 extra에 넣고
    "{extra[serialized]}" 만 반환합니다.
    """
    import orjson

    log_entry: dict[str, Any] = {
        "timestamp": record["time"].strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
        "level": record["level"].name,
        "message": record["message"],
        "logger": record["name"],
    }

    extra = record.get("extra") or {}
    for key in _CONTEXT_KEYS:
        if key in extra:
            log_entry[key] = extra[key]
    for key, value in extra.items():
        if key not in _CONTEXT_KEYS and key != "serialized":
            log_entry[key] = value

    if record["exception"]:
        exc = record["exception"]
        log_entry["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value) if exc.value else None,
        }

    record["extra"]["serialized"] = orjson.dumps(log_entry, default=str).decode("utf-8")
    return "{extra[serialized]}\n"


def _console_formatter(record: dict[str, Any]) -> str:
    """컬러 콘솔 형식의 로그 포맷터"""
    fmt = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    fmt += "<level>{level: <8}</level> | "
    fmt += "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "

    extra = record.get("extra") or {}
    if "stream_id" in extra:
        fmt += "<blue>[{extra[stream_id]}]</blue> "

    fmt += "<level>{message}</level>\n"

    if record["exception"]:
        fmt += "{exception}"

    return fmt


_LOG_LEVELS = {
    "DEBUG": "DEBUG",
    "INFO": "INFO",
    "WARNING": "WARNING",
    "WARN": "WARNING",
    "ERROR": "ERROR",
    "CRITICAL": "CRITICAL",
}


def configure_logging(
    level: str = "INFO",
    json_output: bool | None = None,
    log_file: str | None = None,
) -> None:
    """
    로깅 설정을 초기화합니다.

    Args:
        level: 로그 레벨 (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: JSON 형식 출력 여부 (None이면 환경변수로 결정)
        log_file: 로그 파일 경로 (None이면 stdout만 출력)

    환경변수:
        LOG_LEVEL: 로그 레벨 (기본: 인자 level)
        LOG_FORMAT: 로그 포맷 (json 또는 console, 기본: console)
        LOG_FILE: 로그 파일 경로
    """
    env_level = os.getenv("LOG_LEVEL", level).upper()
    log_level = _LOG_LEVELS.get(env_level, "INFO")

    if json_output is None:
        json_output = os.getenv("LOG_FORMAT", "console").lower() == "json"

    if log_file is None:
        log_file = os.getenv("LOG_FILE")

    logger.remove()

    if json_output:
        logger.add(sys.stdout, format=_json_formatter, level=log_level)
    else:
        logger.add(sys.stdout, format=_console_formatter, level=log_level, colorize=True)

    if log_file:
        logger.add(
            log_file,
            format=_json_formatter,
            level=log_level,
            rotation="100 MB",
            retention="7 days",
            compression="gz",
        )

    logger.debug(f"로깅 설정 완료: level={log_level}, json={json_output}, file={log_file}")


class BoundLogger:
    """
    컨텍스트가 바인딩된 로거

    스트림 감시자처럼 특정 스트림에 속한 코드에서 사용하며,
    모든 로그에 stream_id가 자동으로 포함됩니다.
    """

    def __init__(
        self,
        name: str,
        stream_id: str | None = None,
        component: str | None = None,
    ) -> None:
        self._name = name
        self._stream_id = stream_id
        self._component = component
        self._logger = logger.bind(logger_name=name)

    def _get_extra(self, **kwargs: Any) -> dict[str, Any]:
        extra: dict[str, Any] = {}

        if self._stream_id:
            extra["stream_id"] = self._stream_id
        if self._component:
            extra["component"] = self._component

        extra.update(kwargs)
        return extra

    def bind(self, **kwargs: Any) -> "BoundLogger":
        """추가 컨텍스트를 바인딩한 새 로거를 반환합니다."""
        return BoundLogger(
            name=self._name,
            stream_id=kwargs.get("stream_id", self._stream_id),
            component=kwargs.get("component", self._component),
        )

    def debug(self, message: str, **kwargs: Any) -> None:
        self._logger.bind(**self._get_extra(**kwargs)).debug(message)

    def info(self, message: str, **kwargs: Any) -> None:
        self._logger.bind(**self._get_extra(**kwargs)).info(message)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._logger.bind(**self._get_extra(**kwargs)).warning(message)

    def error(self, message: str, **kwargs: Any) -> None:
        self._logger.bind(**self._get_extra(**kwargs)).error(message)

    def critical(self, message: str, **kwargs: Any) -> None:
        self._logger.bind(**self._get_extra(**kwargs)).critical(message)

    def exception(self, message: str, **kwargs: Any) -> None:
        """예외 정보와 함께 ERROR 레벨 로그를 기록합니다."""
        self._logger.bind(**self._get_extra(**kwargs)).opt(exception=True).error(message)


@lru_cache(maxsize=128)
def get_logger(
    name: str,
    stream_id: str | None = None,
    component: str | None = None,
) -> BoundLogger:
    """
    로거 인스턴스를 반환합니다.

    동일한 인자로 호출하면 캐시된 인스턴스를 반환합니다.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("처리 시작")

        >>> stream_logger = get_logger(__name__, stream_id="kamera-2")
        >>> stream_logger.warning("No frame for 10s. Restarting stream...")
    """
    return BoundLogger(name=name, stream_id=stream_id, component=component)


# 기본 로깅 설정 (모듈 임포트 시 실행)
# 애플리케이션에서 configure_logging()을 호출하여 재설정 가능
if not os.getenv("RTSP_RELAY_SKIP_DEFAULT_LOGGING"):
    configure_logging()

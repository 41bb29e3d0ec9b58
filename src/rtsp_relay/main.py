"""
rtsp_relay 진입점

설정 로드, 로깅 초기화, 레지스트리 배선을 담당합니다.

환경변수:
    CONFIG_PATH: 설정 파일 경로 (기본: config.json)
    FFMPEG_PATH: FFmpeg 실행 파일 경로 (기본: ffmpeg)
"""

from __future__ import annotations

import os
import signal
import sys
import threading
from pathlib import Path

from rtsp_relay.application.stream.registry import StreamRegistry
from rtsp_relay.common.errors import RelayError, StreamError
from rtsp_relay.common.logging import configure_logging, get_logger
from rtsp_relay.domain.models.stream import StreamConfig
from rtsp_relay.infrastructure.video.ffmpeg_relay import create_ffmpeg_relay
from rtsp_relay.interface.config.database import DatabaseConfigSource
from rtsp_relay.interface.config.loader import ConfigLoader
from rtsp_relay.interface.config.schema import AppConfig

logger = get_logger(__name__)

# 전역 컴포넌트 (종료 시 정리용)
_registry: StreamRegistry | None = None
_stop_event = threading.Event()


def apply_observability(app_config: AppConfig) -> None:
    """설정 파일의 관측 설정으로 로깅을 다시 구성합니다."""
    observability = app_config.observability
    json_output = None
    if observability.log_format is not None:
        json_output = observability.log_format == "json"

    configure_logging(
        level=observability.log_level,
        json_output=json_output,
        log_file=observability.log_file,
    )


def load_streams(loader: ConfigLoader, app_config: AppConfig) -> list[StreamConfig]:
    """
    감시할 스트림 목록을 반환합니다.

    database.enabled이면 카메라 테이블에서, 아니면 설정 파일의 streams에서 읽습니다.
    """
    database = app_config.database
    if not database.enabled:
        return loader.to_domain_streams(app_config)

    source = DatabaseConfigSource(
        database.url,
        table=database.table,
        output_url_template=database.output_url_template,
    )
    try:
        return source.load_streams()
    finally:
        source.close()


def _log_abandoned(name: str, error: StreamError) -> None:
    logger.error(
        f"스트림 재시도 포기: {name}",
        stream_id=name,
        error_code=error.code.value,
        retry_count=error.details.get("retry_count"),
    )


def initialize_components(
    config_path: str | Path | None = None,
    ffmpeg_path: str = "ffmpeg",
) -> StreamRegistry:
    """
    설정을 로드하고 모든 스트림 감시자를 시작합니다.

    Args:
        config_path: 설정 파일 경로 (None이면 config.json)
        ffmpeg_path: FFmpeg 실행 파일 경로

    Returns:
        스트림 레지스트리
    """
    loader = ConfigLoader()
    app_config = loader.load_from_file(config_path or "config.json")
    apply_observability(app_config)

    streams = load_streams(loader, app_config)
    if not streams:
        logger.warning("감시할 스트림이 없습니다")

    registry = StreamRegistry(handle_factory=create_ffmpeg_relay(ffmpeg_path))
    registry.set_on_abandoned(_log_abandoned)
    try:
        registry.load(streams)
    except RelayError:
        # 중복 이름 등으로 중간에 실패하면 이미 시작한 감시자도 정리
        registry.stop_all()
        raise
    return registry


def shutdown_components() -> None:
    """모든 스트림 감시자를 종료합니다."""
    global _registry

    registry, _registry = _registry, None
    if registry is None:
        return

    logger.info("컴포넌트 종료 시작")
    try:
        registry.stop_all()
    except Exception as e:
        logger.error(f"스트림 종료 오류: {e}", error=str(e))
    logger.info("컴포넌트 종료 완료")


def setup_signal_handlers() -> None:
    """
    시그널 핸들러를 설정합니다.

    핸들러는 종료 이벤트만 설정하고, 실제 정리는 main()의 finally에서 합니다.
    """
    def signal_handler(signum, frame):
        logger.info(f"시그널 수신: {signum}")
        _stop_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def main() -> None:
    """메인 진입점."""
    global _registry

    setup_signal_handlers()

    config_path = os.getenv("CONFIG_PATH", "config.json")
    ffmpeg_path = os.getenv("FFMPEG_PATH", "ffmpeg")

    try:
        _registry = initialize_components(config_path, ffmpeg_path=ffmpeg_path)
        logger.info(f"스트림 감시 중: {', '.join(_registry.names()) or '-'}")

        # 감시자는 데몬 스레드에서 동작하므로 메인 스레드는 시그널만 기다림
        while not _stop_event.wait(1.0):
            pass

    except RelayError as e:
        logger.error(f"초기화 오류: {e.message}", error_code=e.code.value, details=e.details)
        sys.exit(1)
    except Exception as e:
        logger.exception("초기화 오류", error=str(e))
        sys.exit(1)
    finally:
        shutdown_components()


if __name__ == "__main__":
    main()

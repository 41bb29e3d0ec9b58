"""
설정 로더

config.json을 로드하고 Pydantic 스키마로 검증합니다.
검증된 설정을 도메인 StreamConfig 목록으로 변환합니다.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from rtsp_relay.common.errors import ConfigError, ErrorCode
from rtsp_relay.common.logging import get_logger
from rtsp_relay.domain.models.stream import StreamConfig as DomainStreamConfig

from .schema import AppConfig, StreamConfig

logger = get_logger(__name__)


class ConfigLoader:
    """config.json 로딩 및 변환을 담당합니다."""

    def __init__(self, default_path: str = "config.json") -> None:
        self._default_path = Path(default_path)

    def load_from_file(self, path: str | Path | None = None) -> AppConfig:
        """파일에서 설정을 로드하고 검증합니다."""
        target = Path(path) if path else self._default_path

        if not target.exists():
            raise ConfigError(
                ErrorCode.CONFIG_NOT_FOUND,
                f"설정 파일을 찾을 수 없습니다: {target}",
                config_path=str(target),
            )

        try:
            content = target.read_text(encoding="utf-8")
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ConfigError(
                ErrorCode.CONFIG_PARSE_ERROR,
                f"설정 파일 파싱에 실패했습니다: {e}",
                config_path=str(target),
                details={"error": str(e)},
            ) from e

        if not isinstance(data, dict):
            raise ConfigError(
                ErrorCode.CONFIG_PARSE_ERROR,
                "설정 파일 최상위는 객체여야 합니다",
                config_path=str(target),
            )

        return self.load_from_dict(data, config_path=str(target))

    def load_from_dict(
        self,
        data: dict[str, Any],
        config_path: str | None = None,
    ) -> AppConfig:
        """딕셔너리에서 설정을 검증합니다."""
        try:
            config = AppConfig.model_validate(data)
            return config
        except ValidationError as e:
            errors = e.errors(include_url=False, include_context=False)
            logger.error("설정 검증 실패", errors=errors, config_path=config_path)
            raise ConfigError(
                ErrorCode.CONFIG_INVALID,
                "설정 검증에 실패했습니다",
                config_path=config_path,
                details={"errors": errors},
            ) from e

    def to_domain_stream(self, stream: StreamConfig) -> DomainStreamConfig:
        """
        스키마 StreamConfig 하나를 도메인 StreamConfig로 변환합니다.

        Raises:
            ConfigError: 도메인 검증(예: RTSP 로케이터 파싱)에 실패한 경우
        """
        try:
            return DomainStreamConfig(
                name=stream.name,
                source_url=stream.source_url,
                output_url=stream.output_url,
                output_format=stream.output_format,
                rtsp_transport=stream.rtsp_transport,
                ffmpeg_options=dict(stream.ffmpeg_options),
                max_retries=stream.max_retries,
                retry_delay_ms=stream.retry_delay_ms,
                watchdog_timeout_ms=stream.watchdog_timeout_ms,
                watchdog_check_interval_ms=stream.watchdog_check_interval_ms,
                activity_marker=stream.activity_marker,
                probe_timeout_ms=stream.probe_timeout_ms,
                retry_reset_after_ms=stream.retry_reset_after_ms,
                enabled=stream.enabled,
            )
        except ValueError as e:
            raise ConfigError(
                ErrorCode.CONFIG_INVALID,
                f"스트림 설정이 올바르지 않습니다: {stream.name} - {e}",
                field_name=stream.name,
            ) from e

    def to_domain_streams(self, config: AppConfig) -> list[DomainStreamConfig]:
        """StreamConfig(Pydantic)를 Domain StreamConfig로 변환합니다."""
        return [self.to_domain_stream(stream) for stream in config.streams]

"""
데이터베이스 설정 소스

카메라 테이블에서 활성(status = 1) 카메라를 읽어 StreamConfig 목록으로 변환합니다.
카메라 테이블에는 출력 주소 컬럼이 없으므로 출력 URL은 템플릿으로 만듭니다.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError
from sqlalchemy import Engine, create_engine, text
from sqlalchemy.exc import SQLAlchemyError

from rtsp_relay.common.errors import ConfigError, ErrorCode
from rtsp_relay.common.logging import get_logger
from rtsp_relay.domain.models.stream import StreamConfig, mask_url

from .loader import ConfigLoader
from .schema import (
    DEFAULT_OUTPUT_URL_TEMPLATE,
    TABLE_NAME_PATTERN,
    StreamConfig as StreamConfigSchema,
    validate_output_url_template,
)

logger = get_logger(__name__)

# 컬럼 → 스키마 필드
_COLUMNS = {
    "device_name": "name",
    "stream_url": "source_url",
    "ffmpeg_options": "ffmpeg_options",
    "max_retries": "max_retries",
    "retry_delay": "retry_delay_ms",
    "watchdog_timeout": "watchdog_timeout_ms",
    "watchdog_check_interval": "watchdog_check_interval_ms",
}


class DatabaseConfigSource:
    """
    카메라 테이블 조회기

    Example:
        >>> source = DatabaseConfigSource("postgresql://user:pass@db/cctv")
        >>> configs = source.load_streams()
        >>> source.close()
    """

    def __init__(
        self,
        url: str | None = None,
        table: str = "bwcam",
        engine: Engine | None = None,
        output_url_template: str = DEFAULT_OUTPUT_URL_TEMPLATE,
    ) -> None:
        """
        Args:
            url: SQLAlchemy 접속 URL (engine을 넘기면 생략 가능)
            table: 카메라 테이블 이름
            engine: 이미 생성된 엔진
            output_url_template: 출력 URL 템플릿 ({name}은 device_name으로 치환)
        """
        if engine is None and not url:
            raise ValueError("url 또는 engine이 필요합니다")
        if not TABLE_NAME_PATTERN.match(table):
            raise ValueError(f"테이블 이름이 올바르지 않습니다: {table}")
        validate_output_url_template(output_url_template)

        self._url = url
        self._table = table
        self._engine = engine
        self._owns_engine = engine is None
        self._output_url_template = output_url_template
        self._loader = ConfigLoader()

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = create_engine(self._url, pool_pre_ping=True)
        return self._engine

    def build_query(self) -> str:
        columns = ", ".join(_COLUMNS)
        return f"SELECT {columns} FROM {self._table} WHERE status = 1"

    def load_streams(self) -> list[StreamConfig]:
        """
        활성 카메라 목록을 읽습니다. 올바르지 않은 행은 로그를 남기고 건너뜁니다.

        Raises:
            ConfigError: 데이터베이스 조회에 실패한 경우
        """
        source = mask_url(self._url) if self._url else self._table
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(text(self.build_query())).mappings().all()
        except SQLAlchemyError as e:
            raise ConfigError(
                ErrorCode.CONFIG_SOURCE_FAILED,
                f"카메라 목록 조회에 실패했습니다: {e}",
                config_path=source,
                details={"table": self._table},
            ) from e

        configs: list[StreamConfig] = []
        for row in rows:
            config = self._row_to_config(row)
            if config is not None:
                configs.append(config)

        logger.info(f"DB에서 카메라 {len(configs)}개 로드", table=self._table, rows=len(rows))
        return configs

    def _row_to_config(self, row: Any) -> StreamConfig | None:
        device_name = row.get("device_name")
        data: dict[str, Any] = {}
        for column, field_name in _COLUMNS.items():
            value = row.get(column)
            # NULL은 기본값 사용
            if value is not None:
                data[field_name] = value
        if device_name:
            data["output_url"] = self._output_url_template.format(name=device_name)

        try:
            options = data.get("ffmpeg_options")
            if isinstance(options, (str, bytes)):
                data["ffmpeg_options"] = json.loads(options) if options.strip() else {}

            schema = StreamConfigSchema.model_validate(data)
            return self._loader.to_domain_stream(schema)
        except json.JSONDecodeError as e:
            logger.warning(f"ffmpeg_options 파싱 실패, 건너뜀: {device_name} - {e}")
        except ValidationError as e:
            logger.warning(
                f"카메라 설정 검증 실패, 건너뜀: {device_name}",
                errors=e.errors(include_url=False, include_context=False),
            )
        except ConfigError as e:
            logger.warning(f"카메라 설정 변환 실패, 건너뜀: {e.message}")
        return None

    def close(self) -> None:
        """직접 만든 엔진의 연결을 정리합니다."""
        if self._engine is not None and self._owns_engine:
            self._engine.dispose()
            self._engine = None

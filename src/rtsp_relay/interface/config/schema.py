"""
설정 스키마 (Pydantic v2)

config.json을 검증하기 위한 스키마를 정의합니다.
기존 카메라 설정의 camelCase 키(streamUrl, ffmpegOptions, maxRetries 등)도
별칭으로 받아들입니다.
"""

from __future__ import annotations

import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Pydantic 모델은 Interface Layer에서만 외부 라이브러리에 의존합니다.

TABLE_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")
DEFAULT_OUTPUT_URL_TEMPLATE = "http://127.0.0.1:8081/{name}"


def validate_output_url_template(template: str) -> str:
    """출력 URL 템플릿은 {name}을 포함하고 다른 치환 필드는 없어야 합니다."""
    try:
        rendered = template.format(name="camera")
    except (AttributeError, KeyError, IndexError, ValueError) as e:
        raise ValueError(f"출력 URL 템플릿이 올바르지 않습니다: {template}") from e
    if not rendered.strip() or rendered == template:
        raise ValueError(f"출력 URL 템플릿에는 {{name}}이 필요합니다: {template}")
    return template


class StreamConfig(BaseModel):
    """스트림 설정 스키마."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, validate_assignment=True)

    name: str = Field(..., description="스트림 이름")
    source_url: str = Field(..., alias="streamUrl", description="RTSP 소스 URL")
    output_url: str = Field(..., alias="outputUrl", description="FFmpeg 출력 URL")
    output_format: str = Field("mpegts", alias="outputFormat", description="출력 포맷")
    rtsp_transport: Literal["tcp", "udp"] | None = Field(
        "tcp", alias="rtspTransport", description="RTSP 입력 전송 방식"
    )
    ffmpeg_options: dict[str, Any] = Field(
        default_factory=dict, alias="ffmpegOptions", description="FFmpeg 옵션 (순서 유지)"
    )

    max_retries: int = Field(10, alias="maxRetries", description="최대 재시도 횟수")
    retry_delay_ms: int = Field(5000, alias="retryDelay", description="재시도 간격 (밀리초)")
    watchdog_timeout_ms: int = Field(
        10000, alias="watchdogTimeout", description="프레임 정체 판정 시간 (0이면 비활성화)"
    )
    watchdog_check_interval_ms: int = Field(
        3000, alias="watchdogCheckInterval", description="워치독 점검 주기 (밀리초)"
    )
    probe_timeout_ms: int = Field(3000, alias="probeTimeout", description="접속 확인 타임아웃")
    activity_marker: str = Field("frame=", alias="activityMarker", description="진행 표시 패턴")
    retry_reset_after_ms: int | None = Field(
        None, alias="retryResetAfter", description="재시도 횟수 초기화 기준 정상 동작 시간"
    )
    enabled: bool = Field(True, description="활성화 여부")

    @field_validator("name", "source_url", "output_url")
    @classmethod
    def not_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("필수 필드는 비워둘 수 없습니다")
        return value

    @field_validator("max_retries")
    @classmethod
    def validate_retries(cls, value: int) -> int:
        if value < 0:
            raise ValueError("maxRetries는 0 이상이어야 합니다")
        return value

    @field_validator("retry_delay_ms", "watchdog_check_interval_ms", "probe_timeout_ms")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("대기 시간은 0보다 커야 합니다")
        return value

    @field_validator("watchdog_timeout_ms")
    @classmethod
    def validate_watchdog_timeout(cls, value: int) -> int:
        if value < 0:
            raise ValueError("watchdogTimeout은 0 이상이어야 합니다")
        return value

    @field_validator("retry_reset_after_ms")
    @classmethod
    def validate_reset_after(cls, value: int | None) -> int | None:
        if value is not None and value <= 0:
            raise ValueError("retryResetAfter는 0보다 커야 합니다")
        return value

    @field_validator("ffmpeg_options")
    @classmethod
    def validate_options(cls, value: dict[str, Any]) -> dict[str, Any]:
        for option, option_value in value.items():
            if not option.startswith("-"):
                raise ValueError(f"FFmpeg 옵션은 '-'로 시작해야 합니다: {option}")
            if isinstance(option_value, (dict, list)):
                raise ValueError(f"FFmpeg 옵션 값은 스칼라여야 합니다: {option}")
        return value


class DatabaseConfig(BaseModel):
    """카메라 목록 데이터베이스 설정."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    enabled: bool = Field(False, description="데이터베이스에서 스트림 목록을 읽을지 여부")
    url: str | None = Field(None, description="SQLAlchemy 접속 URL")
    table: str = Field("bwcam", description="카메라 테이블 이름")
    output_url_template: str = Field(
        DEFAULT_OUTPUT_URL_TEMPLATE,
        description="카메라별 출력 URL 템플릿 ({name}은 device_name으로 치환)",
    )

    @field_validator("table")
    @classmethod
    def validate_table(cls, value: str) -> str:
        if not TABLE_NAME_PATTERN.match(value):
            raise ValueError(f"테이블 이름이 올바르지 않습니다: {value}")
        return value

    @field_validator("output_url_template")
    @classmethod
    def validate_template(cls, value: str) -> str:
        return validate_output_url_template(value)

    @model_validator(mode="after")
    def validate_url(self) -> "DatabaseConfig":
        if self.enabled and not self.url:
            raise ValueError("database.enabled가 true이면 url은 필수입니다")
        return self


class ObservabilityConfig(BaseModel):
    """관측 설정."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        "INFO", description="로그 레벨"
    )
    log_format: Literal["json", "console"] | None = Field(
        None, description="로그 포맷 (None이면 TTY 여부로 결정)"
    )
    log_file: str | None = Field(None, description="로그 파일 경로")

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_level(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


class AppConfig(BaseModel):
    """애플리케이션 전체 설정 스키마."""

    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        validate_assignment=True,
    )

    streams: list[StreamConfig] = Field(default_factory=list, description="스트림 설정 목록")
    database: DatabaseConfig = Field(default_factory=DatabaseConfig, description="DB 설정")
    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig,
        description="관측 설정",
    )

    @model_validator(mode="after")
    def validate_uniqueness(self) -> "AppConfig":
        names = [s.name for s in self.streams]
        if len(names) != len(set(names)):
            raise ValueError("스트림 이름이 중복됩니다")
        return self

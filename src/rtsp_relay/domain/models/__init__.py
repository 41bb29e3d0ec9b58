"""
데이터 모델 모듈

스트림 설정, 소스 주소, 감시자 상태를 정의합니다.
"""

from rtsp_relay.domain.models.stream import (
    SourceEndpoint,
    StreamConfig,
    SupervisorState,
    SupervisorStatus,
    mask_url,
)

__all__ = [
    "SourceEndpoint",
    "StreamConfig",
    "SupervisorState",
    "SupervisorStatus",
    "mask_url",
]

"""
Domain Layer

순수 규칙과 엔티티를 정의합니다.
외부 라이브러리에 의존하지 않으며, 표준 라이브러리만 사용합니다.

구성 요소:
- interfaces: 프로세스 핸들 인터페이스 (Protocol)
- models: 데이터 모델 (StreamConfig, SupervisorState)
"""

from rtsp_relay.domain.interfaces.process import ProcessHandle
from rtsp_relay.domain.models.stream import (
    SourceEndpoint,
    StreamConfig,
    SupervisorState,
    SupervisorStatus,
)

__all__ = [
    "ProcessHandle",
    "SourceEndpoint",
    "StreamConfig",
    "SupervisorState",
    "SupervisorStatus",
]

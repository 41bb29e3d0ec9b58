"""
인터페이스 모듈

감시자가 의존하는 외부 협력자의 Protocol을 정의합니다.
"""

from rtsp_relay.domain.interfaces.process import (
    DiagnosticListener,
    ExitListener,
    ProcessHandle,
    ProcessHandleFactory,
)

__all__ = [
    "DiagnosticListener",
    "ExitListener",
    "ProcessHandle",
    "ProcessHandleFactory",
]

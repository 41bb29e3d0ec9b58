"""
프로세스 핸들 인터페이스

감시자가 소비하는 트랜스코딩 프로세스의 계약을 정의합니다.
실제 구현(FFmpeg)은 Infrastructure Layer에 있습니다.
"""

from __future__ import annotations

from typing import Callable, Protocol

from rtsp_relay.domain.models.stream import StreamConfig

# (returncode) -> None
ExitListener = Callable[[int | None], None]
# (진단 출력 텍스트 조각) -> None
DiagnosticListener = Callable[[str], None]


class ProcessHandle(Protocol):
    """
    관리 대상 트랜스코딩 프로세스

    - start(): 프로세스를 기동합니다. 실패하면 RelayError를 발생시킵니다.
    - stop(): 프로세스를 종료합니다. 여러 번 호출해도 안전해야 합니다.
    - add_exit_listener(): stop()으로 요청하지 않은 종료 시 호출됩니다 (종료 코드 0 포함).
    - add_diagnostic_listener(): 진단 출력(stderr)이 들어오는 순서대로 호출됩니다.
    """

    @property
    def is_running(self) -> bool: ...
    def start(self) -> None: ...
    def stop(self, timeout: float = 5.0) -> None: ...
    def add_exit_listener(self, callback: ExitListener) -> None: ...
    def add_diagnostic_listener(self, callback: DiagnosticListener) -> None: ...


# StreamConfig -> ProcessHandle
ProcessHandleFactory = Callable[[StreamConfig], ProcessHandle]

"""
Application Layer

스트림 감시 유스케이스를 구현합니다.

구성 요소:
- stream: 감시자, 워치독, 레지스트리
"""

from rtsp_relay.application.stream.registry import StreamRegistry
from rtsp_relay.application.stream.supervisor import StreamSupervisor
from rtsp_relay.application.stream.watchdog import StallDetector

__all__ = [
    "StreamRegistry",
    "StreamSupervisor",
    "StallDetector",
]

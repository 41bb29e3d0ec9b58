"""
스트림 감시 모듈

FFmpeg 릴레이의 재시작 프로토콜과 프레임 워치독을 담당합니다.
"""

from rtsp_relay.application.stream.registry import StreamRegistry
from rtsp_relay.application.stream.supervisor import StreamSupervisor
from rtsp_relay.application.stream.watchdog import StallDetector

__all__ = ["StreamRegistry", "StreamSupervisor", "StallDetector"]

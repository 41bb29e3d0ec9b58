"""
rtsp_relay - RTSP 카메라 릴레이 감시 서비스

카메라마다 FFmpeg 릴레이 프로세스를 띄워 RTSP 영상을 브라우저 재생용
MPEG-TS로 변환하고, 프로세스 종료나 프레임 정체가 발생하면 소스 접속을
확인한 뒤 재시작합니다.
"""

__version__ = "0.1.0"
__author__ = "rtsp_relay Team"

from rtsp_relay.common.errors import (
    RelayError,
    StreamError,
    ProcessError,
    ConfigError,
    ErrorCode,
)
from rtsp_relay.common.logging import get_logger

__all__ = [
    "__version__",
    "RelayError",
    "StreamError",
    "ProcessError",
    "ConfigError",
    "ErrorCode",
    "get_logger",
]

# -*- coding: utf-8 -*-
"""
Infrastructure Layer 패키지.

외부 시스템과의 통신을 담당합니다:
- video: FFmpeg 릴레이 프로세스
- network: RTSP 소스 접속 확인
"""

from rtsp_relay.infrastructure.network.liveness import probe
from rtsp_relay.infrastructure.video.ffmpeg_relay import FFmpegRelayProcess, create_ffmpeg_relay

__all__ = [
    "probe",
    "FFmpegRelayProcess",
    "create_ffmpeg_relay",
]

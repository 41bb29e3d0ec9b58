# -*- coding: utf-8 -*-
"""
Video Infrastructure 패키지.

FFmpeg 릴레이 프로세스 실행을 담당합니다.
"""

from rtsp_relay.infrastructure.video.ffmpeg_relay import FFmpegRelayProcess, create_ffmpeg_relay

__all__ = [
    "FFmpegRelayProcess",
    "create_ffmpeg_relay",
]

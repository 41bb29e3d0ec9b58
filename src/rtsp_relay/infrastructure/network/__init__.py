# -*- coding: utf-8 -*-
"""
Network Infrastructure 패키지.

RTSP 소스 접속 확인을 담당합니다.
"""

from rtsp_relay.infrastructure.network.liveness import probe

__all__ = ["probe"]

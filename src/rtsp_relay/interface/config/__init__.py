"""
설정 모듈

config.json 스키마 검증과 데이터베이스 카메라 목록 조회를 담당합니다.
"""

from rtsp_relay.interface.config.database import DatabaseConfigSource
from rtsp_relay.interface.config.loader import ConfigLoader
from rtsp_relay.interface.config.schema import AppConfig

__all__ = ["AppConfig", "ConfigLoader", "DatabaseConfigSource"]

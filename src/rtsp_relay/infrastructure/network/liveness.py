# -*- coding: utf-8 -*-
"""
RTSP 소스 접속 확인.

카메라의 RTSP 포트에 TCP 연결을 시도해 도달 가능 여부만 판단합니다.
이름 해석과 모든 주소에 대한 연결 시도는 하나의 마감 시각 안에서 끝납니다.
"""

from __future__ import annotations

import ipaddress
import socket
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Any, Callable

from rtsp_relay.common.logging import get_logger

logger = get_logger(__name__)

# getaddrinfo()는 타임아웃을 받지 않으므로 별도 스레드에서 실행
_resolver_pool = ThreadPoolExecutor(max_workers=4, thread_name_prefix="rtsp_resolve")


def _is_ip_literal(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def _resolve(
    host: str,
    port: int,
    timeout: float,
    resolver: Callable[..., list[Any]],
) -> list[Any]:
    """
    host:port를 TCP 주소 목록으로 해석합니다.

    Raises:
        TimeoutError: timeout 안에 해석이 끝나지 않은 경우
        OSError: 해석 실패
    """
    args = (host, port, socket.AF_UNSPEC, socket.SOCK_STREAM)
    if _is_ip_literal(host):
        return resolver(*args)

    future = _resolver_pool.submit(resolver, *args)
    try:
        return future.result(timeout=max(timeout, 0.0))
    except FutureTimeoutError:
        future.cancel()
        raise TimeoutError(f"이름 해석 타임아웃: {host}") from None


def probe(
    host: str | None,
    port: int,
    timeout_ms: int = 3000,
    resolver: Callable[..., list[Any]] = socket.getaddrinfo,
    socket_factory: Callable[..., Any] = socket.socket,
) -> bool:
    """
    host:port로 TCP 연결을 시도합니다.

    연결에 성공하면 소켓을 즉시 닫고 True를 반환합니다.
    오류, DNS 실패, 타임아웃 등 모든 실패는 False로 처리하며 예외를 던지지 않습니다.
    주소가 여러 개여도 전체 소요 시간은 timeout_ms를 넘지 않습니다.

    Args:
        host: 대상 호스트
        port: 대상 포트
        timeout_ms: 전체 타임아웃 (밀리초)
        resolver: 이름 해석 함수 (테스트 시 교체)
        socket_factory: 소켓 생성 함수 (테스트 시 교체)

    Returns:
        도달 가능 여부
    """
    if not host:
        return False
    if not isinstance(port, int) or not 0 < port < 65536:
        logger.debug(f"RTSP 접속 인자 오류: {host}:{port}")
        return False

    timeout = timeout_ms / 1000.0
    deadline = time.monotonic() + timeout

    try:
        addresses = _resolve(host, port, timeout, resolver)
    except TimeoutError:
        logger.debug(f"RTSP 이름 해석 타임아웃: {host}")
        return False
    except (OSError, UnicodeError) as e:
        logger.debug(f"RTSP 이름 해석 실패: {host} ({e})")
        return False

    for family, socktype, proto, _, sockaddr in addresses:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            logger.debug(f"RTSP 접속 타임아웃: {host}:{port}")
            return False

        try:
            sock = socket_factory(family, socktype, proto)
        except OSError as e:
            logger.debug(f"RTSP 소켓 생성 실패: {host}:{port} ({e})")
            continue

        try:
            sock.settimeout(remaining)
            sock.connect(sockaddr)
            return True
        except socket.timeout:
            logger.debug(f"RTSP 접속 타임아웃: {host}:{port} ({sockaddr[0]})")
        except OSError as e:
            logger.debug(f"RTSP 접속 실패: {host}:{port} ({e})")
        except (ValueError, OverflowError, TypeError) as e:
            logger.debug(f"RTSP 접속 인자 오류: {host}:{port} ({e})")
        finally:
            sock.close()

    return False

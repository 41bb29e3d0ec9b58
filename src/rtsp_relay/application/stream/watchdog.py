"""
프레임 워치독

FFmpeg 진단 출력에서 진행 표시(frame=...)가 끊기면 정체로 판단합니다.
"""

from __future__ import annotations

import re
import threading
import time
from typing import Callable

from rtsp_relay.common.logging import get_logger

logger = get_logger(__name__)


class StallDetector:
    """
    정체 감지기

    핸들 하나에만 묶이는 일회성 감지기입니다. 진단 출력 조각이 activity_marker와
    일치하면 마지막 활동 시각을 갱신하고, check_interval마다 유휴 시간이
    timeout을 넘었는지 확인합니다. 넘으면 on_stalled를 한 번만 호출하고
    스스로 폴링을 멈춥니다. 새 핸들에는 새 감지기를 만들어야 합니다.

    Attributes:
        timeout_seconds: 정체 판정 유휴 시간 (초)
        check_interval_seconds: 점검 주기 (초)

    Example:
        >>> detector = StallDetector("kamera-2", 10.0, 3.0, on_stalled=handle_stall)
        >>> handle.add_diagnostic_listener(detector.observe)
        >>> detector.start()
        >>> ...
        >>> detector.cancel()
    """

    def __init__(
        self,
        name: str,
        timeout_seconds: float,
        check_interval_seconds: float,
        on_stalled: Callable[[float], None],
        activity_marker: str = "frame=",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            name: 스트림 이름 (스레드 이름, 로그용)
            timeout_seconds: 정체 판정 유휴 시간 (초)
            check_interval_seconds: 점검 주기 (초)
            on_stalled: 정체 감지 콜백 (idle_seconds) -> None
            activity_marker: 진행으로 간주할 패턴 (정규식)
            clock: 단조 증가 시계
        """
        self.name = name
        self.timeout_seconds = timeout_seconds
        self.check_interval_seconds = check_interval_seconds
        self._on_stalled = on_stalled
        self._marker = re.compile(activity_marker)
        self._clock = clock

        # 진단 리더 스레드만 쓰고 폴링 스레드만 읽음
        self._last_activity = clock()

        self._lock = threading.Lock()
        self._fired = False
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def last_activity(self) -> float:
        return self._last_activity

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def is_active(self) -> bool:
        return not self._fired and not self._stop_event.is_set()

    def observe(self, chunk: str) -> None:
        """진단 출력 조각을 받아 활동 표시가 있으면 시각을 갱신합니다."""
        if not self._marker.search(chunk):
            return
        now = self._clock()
        if now > self._last_activity:
            self._last_activity = now

    def idle_seconds(self) -> float:
        return self._clock() - self._last_activity

    def check(self) -> bool:
        """
        한 번 점검합니다.

        Returns:
            이번 점검에서 정체를 선언했는지 여부
        """
        with self._lock:
            if self._fired or self._stop_event.is_set():
                return False
            idle = self.idle_seconds()
            if idle <= self.timeout_seconds:
                return False
            self._fired = True
            self._stop_event.set()

        try:
            self._on_stalled(idle)
        except Exception as e:
            logger.exception(f"정체 콜백 오류: {e}", stream_id=self.name)
        return True

    def start(self) -> None:
        """폴링 스레드를 시작합니다."""
        if self._thread is not None:
            return

        self._thread = threading.Thread(
            target=self._poll_loop,
            name=f"watchdog_{self.name}",
            daemon=True,
        )
        self._thread.start()

    def cancel(self) -> None:
        """폴링을 멈춥니다. 스레드를 join하지 않으므로 콜백 안에서도 호출할 수 있습니다."""
        self._stop_event.set()

    def _poll_loop(self) -> None:
        while not self._stop_event.wait(self.check_interval_seconds):
            self.check()

"""
스트림 감시자

FFmpeg 릴레이 프로세스 하나를 기동하고, 비정상 종료나 프레임 정체가
발생하면 재시작 프로토콜(중지 → 소스 확인 → 재기동/대기/포기)을 수행합니다.
"""

from __future__ import annotations

import threading
import time
from functools import partial
from typing import Any, Callable, Protocol

from rtsp_relay.application.stream.watchdog import StallDetector
from rtsp_relay.common.errors import ErrorCode, RelayError, StreamError
from rtsp_relay.common.logging import get_logger
from rtsp_relay.domain.interfaces.process import ProcessHandle, ProcessHandleFactory
from rtsp_relay.domain.models.stream import (
    StreamConfig,
    SupervisorState,
    SupervisorStatus,
)
from rtsp_relay.infrastructure.network.liveness import probe


class TimerProtocol(Protocol):
    """취소 가능한 예약 작업"""
    def cancel(self) -> None: ...


# (host, port, timeout_ms) -> reachable
Prober = Callable[[str, int, int], bool]
# (delay_seconds, callback) -> timer
TimerFactory = Callable[[float, Callable[[], None]], TimerProtocol]
# (config, on_stalled) -> detector
DetectorFactory = Callable[[StreamConfig, Callable[[float], None]], StallDetector]


def start_timer(delay: float, callback: Callable[[], None]) -> threading.Timer:
    """데몬 스레드 타이머를 시작합니다."""
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class StreamSupervisor:
    """
    스트림 감시자

    스트림 하나의 FFmpeg 핸들, 워치독, 재시도 횟수, 타이머를 단독으로 소유합니다.
    종료 감시 스레드, 워치독 스레드, 재시도 타이머 스레드에서 들어오는 모든 이벤트는
    감시자 락 안에서 순서대로 처리되므로 재시작 프로토콜이 동시에 두 번 돌지 않습니다.

    이전 세대 핸들에서 늦게 도착한 이벤트는 세대 번호로 걸러냅니다.

    Example:
        >>> supervisor = StreamSupervisor(config, handle_factory=create_ffmpeg_relay())
        >>> supervisor.start()
        >>> ...
        >>> supervisor.close()
    """

    def __init__(
        self,
        config: StreamConfig,
        handle_factory: ProcessHandleFactory,
        prober: Prober = probe,
        detector_factory: DetectorFactory | None = None,
        timer_factory: TimerFactory = start_timer,
        clock: Callable[[], float] = time.monotonic,
        autostart: bool = False,
    ) -> None:
        """
        Args:
            config: 스트림 설정
            handle_factory: 설정으로 FFmpeg 핸들을 만드는 팩토리
            prober: RTSP 소스 접속 확인 함수
            detector_factory: 워치독 팩토리 (None이면 StallDetector)
            timer_factory: 재시도 타이머 팩토리
            clock: 단조 증가 시계
            autostart: 생성 직후 start() 호출 여부
        """
        self.config = config
        self._state = SupervisorState(config=config)
        self._lock = threading.RLock()

        self._handle_factory = handle_factory
        self._prober = prober
        self._detector_factory = detector_factory or self._create_detector
        self._timer_factory = timer_factory
        self._clock = clock

        self._handle: ProcessHandle | None = None
        self._detector: StallDetector | None = None
        self._retry_timer: TimerProtocol | None = None
        self._closed = False

        self._on_status_change: Callable[[str, SupervisorStatus], None] | None = None
        self._on_abandoned: Callable[[str, StreamError], None] | None = None

        self._logger = get_logger(__name__, stream_id=config.name)

        if autostart:
            self.start()

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def status(self) -> SupervisorStatus:
        return self._state.status

    @property
    def retry_count(self) -> int:
        return self._state.retry_count

    @property
    def handle(self) -> ProcessHandle | None:
        return self._handle

    @property
    def detector(self) -> StallDetector | None:
        return self._detector

    @property
    def is_closed(self) -> bool:
        return self._closed

    def set_on_status_change(
        self, callback: Callable[[str, SupervisorStatus], None] | None
    ) -> None:
        """상태 변경 콜백: (name, status) -> None"""
        self._on_status_change = callback

    def set_on_abandoned(self, callback: Callable[[str, StreamError], None] | None) -> None:
        """재시도 한도 초과 콜백: (name, error) -> None"""
        self._on_abandoned = callback

    def start(self) -> None:
        """
        첫 FFmpeg 핸들을 기동합니다.

        Raises:
            StreamError: close()된 감시자인 경우
        """
        with self._lock:
            if self._closed:
                raise StreamError(
                    ErrorCode.STREAM_CLOSED,
                    f"이미 종료된 감시자입니다: {self.name}",
                    stream_id=self.name,
                )
            if self._state.status != SupervisorStatus.IDLE:
                self._logger.warning(f"감시자가 이미 시작됨 (상태: {self._state.status.value})")
                return
            self._start_handle()

    def close(self) -> None:
        """재시도 타이머와 워치독을 취소하고 FFmpeg를 중지합니다."""
        with self._lock:
            if self._closed:
                return
            self._closed = True

            if self._retry_timer is not None:
                self._retry_timer.cancel()
                self._retry_timer = None

            self._stop_current()
            self._set_status(SupervisorStatus.STOPPED)
            self._logger.info("스트림 감시 종료")

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            stats = self._state.to_dict()
            handle_stats = getattr(self._handle, "get_stats", None)
            stats["process"] = handle_stats() if callable(handle_stats) else None
            return stats

    # ------------------------------------------------------------------
    # Starting
    # ------------------------------------------------------------------

    def _create_detector(
        self, config: StreamConfig, on_stalled: Callable[[float], None]
    ) -> StallDetector:
        return StallDetector(
            name=config.name,
            timeout_seconds=config.watchdog_timeout_ms / 1000.0,
            check_interval_seconds=config.watchdog_check_interval_ms / 1000.0,
            on_stalled=on_stalled,
            activity_marker=config.activity_marker,
            clock=self._clock,
        )

    def _start_handle(self) -> None:
        """새 핸들과 새 워치독을 만들어 기동합니다. 락을 잡은 상태에서 호출됩니다."""
        self._set_status(SupervisorStatus.STARTING)
        self._logger.info("Starting stream...")

        generation = self._state.record_start(self._clock())
        detector: StallDetector | None = None

        try:
            handle = self._handle_factory(self.config)
            if self.config.watchdog_enabled:
                detector = self._detector_factory(
                    self.config, partial(self._handle_stalled, generation)
                )
                handle.add_diagnostic_listener(detector.observe)
            handle.add_exit_listener(partial(self._handle_exit, generation))

            self._handle = handle
            self._detector = detector
            handle.start()
        except RelayError as e:
            # 기동 실패는 비정상 종료와 같은 경로로 처리
            self._logger.error(f"FFmpeg 시작 실패: {e.message}", error_code=e.code.value)
            self._state.exit_count += 1
            self._set_status(SupervisorStatus.EXITED, e.message)
            self._run_restart_protocol()
            return

        if detector is not None:
            detector.start()
        self._set_status(SupervisorStatus.RUNNING)

    # ------------------------------------------------------------------
    # Running 이벤트
    # ------------------------------------------------------------------

    def _accepts(self, generation: int) -> bool:
        return (
            not self._closed
            and generation == self._state.generation
            and self._state.status == SupervisorStatus.RUNNING
        )

    def _handle_exit(self, generation: int, returncode: int | None) -> None:
        with self._lock:
            if not self._accepts(generation):
                return

            self._state.exit_count += 1
            self._logger.warning(
                f"FFmpeg error. Retrying in {self._retry_delay_seconds:g}s...",
                returncode=returncode,
            )
            self._set_status(SupervisorStatus.EXITED, f"FFmpeg exited with code {returncode}")
            self._maybe_reset_retry()
            self._run_restart_protocol()

    def _handle_stalled(self, generation: int, idle_seconds: float) -> None:
        with self._lock:
            if not self._accepts(generation):
                return

            self._state.stall_count += 1
            self._logger.warning(
                f"No frame for {self.config.watchdog_timeout_ms / 1000:g}s. Restarting stream...",
                idle_seconds=round(idle_seconds, 1),
            )
            if self._detector is not None:
                self._detector.cancel()
            self._set_status(SupervisorStatus.STALLED, f"no frame for {idle_seconds:.1f}s")
            self._maybe_reset_retry()
            self._run_restart_protocol()

    def _maybe_reset_retry(self) -> None:
        """오래 정상 동작한 핸들이 실패하면 재시도 횟수를 초기화합니다."""
        reset_after_ms = self.config.retry_reset_after_ms
        running_since = self._state.running_since
        if reset_after_ms is None or running_since is None or self._state.retry_count == 0:
            return

        healthy_ms = (self._clock() - running_since) * 1000
        if healthy_ms >= reset_after_ms:
            self._logger.info(
                f"{healthy_ms / 1000:.0f}초 정상 동작 후 실패, 재시도 횟수 초기화",
                previous_retry_count=self._state.retry_count,
            )
            self._state.reset_retry()

    # ------------------------------------------------------------------
    # 재시작 프로토콜
    # ------------------------------------------------------------------

    @property
    def _retry_delay_seconds(self) -> float:
        return self.config.retry_delay_ms / 1000

    def _run_restart_protocol(self) -> None:
        """재시작 프로토콜 진입점. 락을 잡은 상태에서 호출됩니다."""
        if self._state.retries_exhausted:
            self._abandon()
            return

        self._state.record_retry()
        self._stop_current()

        self._set_status(SupervisorStatus.PROBING)
        endpoint = self.config.source_endpoint
        self._state.probe_count += 1
        try:
            reachable = self._prober(endpoint.host, endpoint.port, self.config.probe_timeout_ms)
        except Exception as e:
            self._logger.exception(f"접속 확인 오류: {e}")
            reachable = False

        if not reachable:
            self._logger.info(
                f"RTSP not reachable. Retrying in {self._retry_delay_seconds:g}s...",
                retry_count=self._state.retry_count,
                host=endpoint.host,
                port=endpoint.port,
            )
            self._set_status(SupervisorStatus.BACKOFF, "RTSP not reachable")
            self._state.schedule_retry(self._retry_delay_seconds)
            self._retry_timer = self._timer_factory(self._retry_delay_seconds, self._handle_retry_timer)
            return

        self._logger.info(
            "RTSP reachable. Restarting stream...",
            retry_count=self._state.retry_count,
        )
        self._set_status(SupervisorStatus.RESTARTING)
        self._start_handle()

    def _handle_retry_timer(self) -> None:
        with self._lock:
            if self._closed or self._state.status != SupervisorStatus.BACKOFF:
                return
            self._retry_timer = None
            self._run_restart_protocol()

    def _stop_current(self) -> None:
        """현재 워치독과 핸들을 정리합니다. 중지 오류는 로그만 남깁니다."""
        detector, self._detector = self._detector, None
        if detector is not None:
            detector.cancel()

        handle, self._handle = self._handle, None
        self._state.running_since = None
        if handle is None:
            return

        try:
            handle.stop()
        except Exception as e:
            self._logger.warning(f"Error stopping stream: {e}")

    def _abandon(self) -> None:
        # 정체 상태로 포기하면 FFmpeg가 아직 살아 있을 수 있음
        self._stop_current()

        self._logger.error(
            "Max retries reached. Giving up.",
            retry_count=self._state.retry_count,
            max_retries=self.config.max_retries,
        )
        self._set_status(SupervisorStatus.ABANDONED, "max retries reached")

        if self._on_abandoned:
            error = StreamError(
                ErrorCode.STREAM_ABANDONED,
                f"재시도 한도({self.config.max_retries}회)를 초과했습니다",
                stream_id=self.name,
                details={"retry_count": self._state.retry_count},
            )
            try:
                self._on_abandoned(self.name, error)
            except Exception as e:
                self._logger.error(f"포기 콜백 오류: {e}")

    def _set_status(self, status: SupervisorStatus, error: str | None = None) -> None:
        self._state.set_status(status, error)
        if self._on_status_change:
            try:
                self._on_status_change(self.name, status)
            except Exception as e:
                self._logger.error(f"상태 변경 콜백 오류: {e}")

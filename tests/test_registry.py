import pytest

from fakes import (
    FakeHandleFactory,
    FakeTimerFactory,
    ManualDetectorFactory,
    ScriptedProber,
    make_config,
)
from rtsp_relay.application.stream.registry import StreamRegistry
from rtsp_relay.common.errors import ErrorCode, StreamError
from rtsp_relay.domain.models.stream import SupervisorStatus


@pytest.fixture
def prober() -> ScriptedProber:
    return ScriptedProber(True)


@pytest.fixture
def registry(
    handle_factory: FakeHandleFactory,
    timer_factory: FakeTimerFactory,
    detector_factory: ManualDetectorFactory,
    prober: ScriptedProber,
) -> StreamRegistry:
    return StreamRegistry(
        handle_factory,
        prober=prober,
        detector_factory=detector_factory,
        timer_factory=timer_factory,
    )


class TestStreamRegistry:
    def test_register_starts_supervisor(
        self, registry: StreamRegistry, handle_factory: FakeHandleFactory
    ) -> None:
        supervisor = registry.register(make_config())

        assert supervisor.status == SupervisorStatus.RUNNING
        assert registry.get("kamera-2") is supervisor
        assert "kamera-2" in registry
        assert len(handle_factory.handles) == 1

    def test_register_without_start(
        self, registry: StreamRegistry, handle_factory: FakeHandleFactory
    ) -> None:
        supervisor = registry.register(make_config(), start=False)
        assert supervisor.status == SupervisorStatus.IDLE
        assert handle_factory.handles == []

    def test_duplicate_name_is_rejected(self, registry: StreamRegistry) -> None:
        registry.register(make_config())
        with pytest.raises(StreamError) as exc_info:
            registry.register(make_config(output_url="http://127.0.0.1:8081/other"))
        assert exc_info.value.code == ErrorCode.STREAM_ALREADY_REGISTERED

    def test_get_unknown_stream(self, registry: StreamRegistry) -> None:
        with pytest.raises(StreamError) as exc_info:
            registry.get("kamera-9")
        assert exc_info.value.code == ErrorCode.STREAM_NOT_FOUND

    def test_load_skips_disabled(self, registry: StreamRegistry) -> None:
        started = registry.load([
            make_config(name="kamera-1"),
            make_config(name="kamera-2", enabled=False),
            make_config(name="kamera-3"),
        ])

        assert [s.name for s in started] == ["kamera-1", "kamera-3"]
        assert registry.names() == ["kamera-1", "kamera-3"]

    def test_supervisors_are_independent(
        self, registry: StreamRegistry, handle_factory: FakeHandleFactory
    ) -> None:
        registry.load([make_config(name="kamera-1"), make_config(name="kamera-2")])

        handle_factory.handles[0].exit(1)

        assert registry.get("kamera-1").retry_count == 1
        assert registry.get("kamera-2").retry_count == 0

    def test_remove_closes_supervisor(
        self, registry: StreamRegistry, handle_factory: FakeHandleFactory
    ) -> None:
        supervisor = registry.register(make_config())
        registry.remove("kamera-2")

        assert supervisor.status == SupervisorStatus.STOPPED
        assert "kamera-2" not in registry
        assert handle_factory.handles[0].stop_calls == 1

    def test_stop_all(self, registry: StreamRegistry) -> None:
        supervisors = registry.load([make_config(name="kamera-1"), make_config(name="kamera-2")])
        registry.stop_all()

        assert all(s.status == SupervisorStatus.STOPPED for s in supervisors)
        assert len(registry) == 0

    def test_abandoned_callback_and_redeploy(
        self,
        handle_factory: FakeHandleFactory,
        timer_factory: FakeTimerFactory,
        detector_factory: ManualDetectorFactory,
    ) -> None:
        registry = StreamRegistry(
            handle_factory,
            prober=ScriptedProber(False),
            detector_factory=detector_factory,
            timer_factory=timer_factory,
        )
        abandoned: list[str] = []
        registry.set_on_abandoned(lambda name, error: abandoned.append(name))
        registry.register(make_config(max_retries=1))

        handle_factory.current.exit(1)
        timer_factory.last.fire()
        assert abandoned == ["kamera-2"]
        assert registry.get_stats()["abandoned_streams"] == ["kamera-2"]

        fresh = registry.redeploy("kamera-2")
        assert fresh.status == SupervisorStatus.RUNNING
        assert fresh.retry_count == 0
        assert registry.get("kamera-2") is fresh

    def test_status_callback_applies_to_existing_supervisors(
        self, registry: StreamRegistry, handle_factory: FakeHandleFactory
    ) -> None:
        seen: list[tuple[str, SupervisorStatus]] = []
        registry.register(make_config())
        registry.set_on_status_change(lambda name, status: seen.append((name, status)))

        handle_factory.current.exit(1)

        assert ("kamera-2", SupervisorStatus.EXITED) in seen
        assert seen[-1] == ("kamera-2", SupervisorStatus.RUNNING)

    def test_get_stats(self, registry: StreamRegistry) -> None:
        registry.load([make_config(name="kamera-1"), make_config(name="kamera-2")])
        stats = registry.get_stats()

        assert stats["total_streams"] == 2
        assert stats["running_streams"] == 2
        assert stats["abandoned_streams"] == []
        assert stats["streams"]["kamera-1"]["status"] == "RUNNING"

"""Telemetry client wiring channels, decoding, reconciliation and stores."""

from collections.abc import Callable

from pulsetop.config import Settings
from pulsetop.connection import ConnectionManager, Connector
from pulsetop.errors import FrameError
from pulsetop.frames import CpuReading, MemoryReading, Snapshot, decode_frame
from pulsetop.log import get_logger
from pulsetop.models import ConnectionState, Topic
from pulsetop.reconciler import MonitoringReconciler
from pulsetop.timeseries import MemorySeries, TimeSeriesBuffer
from pulsetop.view import ProcessView

logger = get_logger(__name__)


class TelemetryClient:
    """
    Owns one channel per topic and the state derived from them.

    Frames are handled on the event loop in arrival order per topic. After
    each state change every listener is called with the topic that changed.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        connector: Connector | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.cpu = TimeSeriesBuffer(self.settings.history_size)
        self.memory = MemorySeries(self.settings.history_size)
        self.processes = ProcessView(self.settings.page_size)
        self.reconciler = MonitoringReconciler(
            {
                Topic.CPU: self.cpu.clear,
                Topic.MEMORY: self.memory.clear,
                Topic.PROCESSES: self.processes.clear,
            },
            authoritative_topic=self.settings.authoritative_topic,
        )
        self.status: dict[Topic, ConnectionState] = {
            topic: ConnectionState.DISCONNECTED for topic in Topic
        }
        self._listeners: list[Callable[[Topic], None]] = []
        self._channels: dict[Topic, ConnectionManager] = {}
        for topic in Topic:
            channel = ConnectionManager(
                self.settings.topic_url(topic),
                base_delay=self.settings.connection.base_delay,
                max_delay=self.settings.connection.max_delay,
                connector=connector,
                name=topic.value,
            )
            channel.set_handlers(
                on_message=lambda raw, topic=topic: self.handle_frame(topic, raw),
                on_status_change=lambda status, topic=topic: self._set_status(topic, status),
            )
            self._channels[topic] = channel

    @property
    def monitoring_enabled(self) -> bool | None:
        return self.reconciler.enabled

    def channel(self, topic: Topic) -> ConnectionManager:
        return self._channels[topic]

    def add_listener(self, callback: Callable[[Topic], None]) -> None:
        self._listeners.append(callback)

    def start(self) -> None:
        """Open every channel. Needs a running event loop."""
        for channel in self._channels.values():
            channel.start()

    def stop(self) -> None:
        for channel in self._channels.values():
            channel.stop()

    def set_monitoring_enabled(self, enabled: bool) -> None:
        """Apply an enablement state learned over HTTP."""
        self.reconciler.set_enabled(enabled)
        self._notify_all()

    def handle_frame(self, topic: Topic, raw: str | bytes) -> None:
        """Decode, reconcile and apply one frame. Parse failures are dropped."""
        try:
            messages = decode_frame(topic, raw)
        except FrameError as e:
            logger.debug("frame_dropped", topic=topic.value, error=str(e))
            return

        was_enabled = self.reconciler.enabled
        accepted = self.reconciler.reconcile(topic, messages)
        for message in accepted:
            if isinstance(message, CpuReading):
                self.cpu.append(message.sample)
            elif isinstance(message, MemoryReading):
                self.memory.append(message.sample)
            elif isinstance(message, Snapshot):
                self.processes.update_snapshot(message.records)

        if self.reconciler.enabled != was_enabled:
            self._notify_all()
        else:
            self._notify(topic)

    def _set_status(self, topic: Topic, status: ConnectionState) -> None:
        self.status[topic] = status
        self._notify(topic)

    def _notify_all(self) -> None:
        for topic in Topic:
            self._notify(topic)

    def _notify(self, topic: Topic) -> None:
        for callback in self._listeners:
            try:
                callback(topic)
            except Exception:
                logger.exception("listener_failed", topic=topic.value)

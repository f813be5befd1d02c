"""Monitoring-enablement reconciliation across topic channels."""

from collections.abc import Callable, Iterable, Mapping

from pulsetop.frames import Control, Message
from pulsetop.log import get_logger
from pulsetop.models import Topic

logger = get_logger(__name__)


class MonitoringReconciler:
    """
    Gate between decoded frames and topic state.

    Tracks the global enablement flag and decides which data messages may
    reach the stores. Disabling clears state, it never merely hides it, and
    data arriving while disabled is dropped so stale in-flight frames cannot
    repopulate cleared stores.

    By default every channel is authoritative and the last flag received
    wins. The backend only ever re-enables on the cpu and memory channels.
    With ``authoritative_topic`` set, only that channel may change the global
    flag, and a disabling flag seen on any other channel still clears that
    channel's own topic.
    """

    def __init__(
        self,
        clearers: Mapping[Topic, Callable[[], None]],
        authoritative_topic: Topic | None = None,
        enabled: bool | None = None,
    ) -> None:
        self._clearers = dict(clearers)
        self._authoritative_topic = authoritative_topic
        # None means no flag seen yet; data is admitted until told otherwise
        self._enabled = enabled

    @property
    def enabled(self) -> bool | None:
        """Global enablement state, or None if nothing has reported it yet."""
        return self._enabled

    @property
    def authoritative_topic(self) -> Topic | None:
        return self._authoritative_topic

    def is_authoritative(self, topic: Topic) -> bool:
        return self._authoritative_topic is None or topic is self._authoritative_topic

    def set_enabled(self, enabled: bool) -> None:
        """Apply an enablement state learned out of band (e.g. over HTTP)."""
        previous = self._enabled
        self._enabled = enabled
        if previous != enabled:
            logger.info("monitoring_state_changed", enabled=enabled, previous=previous)
        if not enabled:
            self.clear_all()

    def clear_all(self) -> None:
        for topic in self._clearers:
            self._clear(topic)

    def reconcile(self, topic: Topic, messages: Iterable[Message]) -> list[Message]:
        """
        Filter one decoded frame from ``topic``.

        Returns the data messages that may be applied to the stores, in
        arrival order. Clearing happens here as a side effect.
        """
        accepted: list[Message] = []
        for message in messages:
            if isinstance(message, Control):
                if self.is_authoritative(topic):
                    self.set_enabled(message.enabled)
                elif not message.enabled:
                    self._clear(topic)
                if not message.enabled:
                    return []
                continue

            if self._enabled is False:
                logger.debug("frame_discarded_while_disabled", topic=topic.value)
                return []
            accepted.append(message)
        return accepted

    def _clear(self, topic: Topic) -> None:
        clear = self._clearers.get(topic)
        if clear is not None:
            clear()

"""
Run lifecycle tracking.

Measures one run at a time and delivers the summary line to the host.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Optional

from ..config.loader import DEFAULT_OPTIONS, NotificationOptions
from ..core.formatter import format_notification
from ..core.usage import aggregate_usage

logger = logging.getLogger(__name__)

RUN_START_EVENT = "agent_start"
RUN_END_EVENT = "agent_end"

Clock = Callable[[], float]
NotificationSink = Callable[[str, str], None]


class Severity(Enum):
    """Severity levels accepted by the notification sink."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class DeliveryContext:
    """Where a finished run's summary can be delivered."""
    has_destination: bool
    notify: NotificationSink


class RunTracker:
    """Tracks the single in-flight run and reports its throughput.

    Holds only the start instant of the current run. A second start before
    an end re-arms the start instant; runs are not queued.
    """

    def __init__(
        self,
        options: Optional[NotificationOptions] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize the tracker.

        Args:
            options: Notification options (defaults when omitted)
            clock: Callable returning the current time in seconds
                (defaults to time.time)
        """
        self.options = options or DEFAULT_OPTIONS
        self.clock = clock or time.time
        self._started_at: Optional[float] = None

    @property
    def is_running(self) -> bool:
        return self._started_at is not None

    def on_run_start(self, *_: Any) -> None:
        """Record the start of a run."""
        self._started_at = self.clock()

    def on_run_end(
        self,
        messages: Iterable[Any],
        context: DeliveryContext,
    ) -> Optional[str]:
        """Finish the current run and deliver its summary if it qualifies.

        The tracker always returns to idle, whether or not anything is sent.

        Args:
            messages: Messages produced during the run
            context: Delivery destination for the summary

        Returns:
            The delivered line, or None when the run was suppressed
        """
        started_at = self._started_at
        self._started_at = None

        if started_at is None:
            logger.debug("Run ended without a recorded start")
            return None
        if not context.has_destination:
            logger.debug("Run ended with no active destination")
            return None

        elapsed_seconds = self.clock() - started_at
        if elapsed_seconds <= 0:
            logger.debug("Run ended with non-positive elapsed time %r", elapsed_seconds)
            return None

        usage = aggregate_usage(messages)

        if usage.output < self.options.min_output_tokens_to_notify:
            logger.debug(
                "Suppressed summary: %s output tokens below %s",
                usage.output, self.options.min_output_tokens_to_notify,
            )
            return None
        if elapsed_seconds < self.options.min_seconds_to_notify:
            logger.debug(
                "Suppressed summary: %.3fs below %ss",
                elapsed_seconds, self.options.min_seconds_to_notify,
            )
            return None

        line = format_notification(elapsed_seconds, usage, self.options)
        context.notify(line, Severity.INFO.value)
        logger.debug("Delivered run summary: %s", line)
        return line


def _read_messages(event: Any) -> Iterable[Any]:
    """Pull the message list out of a run-end payload."""
    if event is None:
        return []
    if isinstance(event, Mapping):
        messages = event.get("messages")
    else:
        messages = getattr(event, "messages", None)
    return messages if messages is not None else []


def _read_context(ctx: Any) -> DeliveryContext:
    """Adapt a host delivery context to a DeliveryContext.

    Hosts expose ``has_ui`` and ``ui.notify``; a DeliveryContext passes
    through unchanged.
    """
    if isinstance(ctx, DeliveryContext):
        return ctx
    ui = getattr(ctx, "ui", None)
    notify = getattr(ui, "notify", None)
    has_destination = bool(getattr(ctx, "has_ui", False)) and callable(notify)
    return DeliveryContext(
        has_destination=has_destination,
        notify=notify if callable(notify) else _discard,
    )


def _discard(text: str, severity: str) -> None:
    return None


def register(
    dispatcher: Any,
    options: Optional[NotificationOptions] = None,
    clock: Optional[Clock] = None,
) -> RunTracker:
    """Attach a RunTracker to a host event dispatcher.

    The dispatcher must expose ``on(event_name, handler)``. The run-end
    handler is called as ``handler(event, ctx)``.

    Args:
        dispatcher: Host event dispatcher
        options: Notification options (defaults when omitted)
        clock: Callable returning the current time in seconds

    Returns:
        The registered tracker
    """
    tracker = RunTracker(options=options, clock=clock)

    def handle_run_end(event: Any = None, ctx: Any = None) -> None:
        tracker.on_run_end(_read_messages(event), _read_context(ctx))

    dispatcher.on(RUN_START_EVENT, tracker.on_run_start)
    dispatcher.on(RUN_END_EVENT, handle_run_end)
    return tracker

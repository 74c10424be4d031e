"""When to summarize: trigger policy and the scheduler that applies it."""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterator, List, Optional

from ..models.config import TriggerConfig
from .memory import MemorySegmentManager
from .store import MessageStore
from .summarizer import EmptyBatchError, Summarizer

logger = logging.getLogger(__name__)

FailureListener = Callable[[Exception], None]


@dataclass(frozen=True)
class TriggerDecision:
    """Outcome of a trigger evaluation."""

    by_count: bool = False
    by_time: bool = False

    @property
    def should_summarize(self) -> bool:
        return self.by_count or self.by_time

    def __bool__(self) -> bool:
        return self.should_summarize


class TriggerPolicy:
    """Decides from message counts and elapsed time whether to summarize.

    Before the first summary the total message count is compared with
    ``initial_threshold``. Afterwards only messages added since the last
    summarization count against ``update_threshold``, so crossing the
    threshold once does not re-trigger on every check.
    """

    def __init__(self, config: Optional[TriggerConfig] = None):
        self.config = config or TriggerConfig()

    def evaluate(
        self,
        message_count: int,
        has_summary: bool,
        summarized_count: int = 0,
        last_summarized_at: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> TriggerDecision:
        unsummarized = max(message_count - summarized_count, 0)

        if has_summary:
            by_count = unsummarized >= self.config.update_threshold
        else:
            by_count = message_count >= self.config.initial_threshold

        by_time = False
        if last_summarized_at is not None and unsummarized > 0:
            elapsed = (now or datetime.now()) - last_summarized_at
            by_time = (
                elapsed > self.config.summarization_interval
                and message_count > self.config.min_messages_for_time_trigger
            )

        return TriggerDecision(by_count=by_count, by_time=by_time)


class SummarizationScheduler:
    """Runs summarization when the policy says so, at most once at a time.

    Message bursts are debounced; the periodic timer and the debounce timer
    share an in-flight guard so overlapping triggers collapse into a single
    provider call. A run captures its batch boundary when it starts, so
    messages sent while it is in flight stay unsummarized for the next run.
    """

    def __init__(
        self,
        store: MessageStore,
        summarizer: Summarizer,
        config: Optional[TriggerConfig] = None,
        memory_manager: Optional[MemorySegmentManager] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.summarizer = summarizer
        self.config = config or TriggerConfig()
        self.policy = TriggerPolicy(self.config)
        self.memory_manager = memory_manager
        self._clock = clock

        context = store.context
        # A stored summary is assumed to cover every stored message
        self.summarized_count = len(context.messages) if context.has_summary else 0
        self.last_summarized_at: Optional[datetime] = None
        self.runs = 0
        self.failures = 0

        self._lock = threading.Lock()
        self._run_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="summarizer")
        self._future: Optional[Future] = None
        self._in_flight = False
        self._debounce_timer: Optional[threading.Timer] = None
        self._stop_event = threading.Event()
        self._periodic_thread: Optional[threading.Thread] = None
        self._listeners: List[FailureListener] = []

    @property
    def unsummarized_count(self) -> int:
        return max(len(self.store) - self.summarized_count, 0)

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def add_failure_listener(self, listener: FailureListener) -> None:
        """Register a callback for failures of background summarization runs."""
        self._listeners.append(listener)

    def _cancel_debounce(self) -> None:
        with self._lock:
            if self._debounce_timer is not None:
                self._debounce_timer.cancel()
                self._debounce_timer = None

    @contextmanager
    def cleared(self) -> Iterator[None]:
        """Hold off summarization while the conversation is wiped.

        Cancels a pending debounce and blocks runs for the duration of the
        block; on exit the cursor is reset for the now empty conversation.
        """
        self._cancel_debounce()
        with self._run_lock:
            try:
                yield
            finally:
                self.summarized_count = 0
                self.last_summarized_at = None

    def evaluate(self) -> TriggerDecision:
        context = self.store.context
        return self.policy.evaluate(
            message_count=len(context.messages),
            has_summary=context.has_summary,
            summarized_count=self.summarized_count,
            last_summarized_at=self.last_summarized_at,
            now=self._clock(),
        )

    def notify_message(self) -> None:
        """Restart the debounce window after a new message."""
        if self._stop_event.is_set():
            return
        with self._lock:
            if self._debounce_timer is not None:
                self._debounce_timer.cancel()
            if self.config.debounce_seconds <= 0:
                self._debounce_timer = None
            else:
                self._debounce_timer = threading.Timer(
                    self.config.debounce_seconds, self.check_and_trigger
                )
                self._debounce_timer.daemon = True
                self._debounce_timer.start()
                return
        self.check_and_trigger()

    def check_and_trigger(self) -> Optional[Future]:
        """Evaluate the policy and start a background run if one is due.

        Returns:
            The future of the run in progress (new or already in flight), or
            None when nothing is due.
        """
        decision = self.evaluate()
        if not decision:
            return None

        with self._lock:
            if self._in_flight:
                logger.debug("Summarization already in flight, trigger coalesced")
                return self._future
            self._in_flight = True
            logger.info(
                f"Triggering summarization - messages: {len(self.store)}, "
                f"unsummarized: {self.unsummarized_count}, time-based: {decision.by_time}"
            )
            self._future = self._executor.submit(self._run_in_background)
            return self._future

    def _run_in_background(self) -> Optional[str]:
        try:
            return self._summarize()
        except Exception as e:
            self.failures += 1
            logger.error(f"Background summarization failed: {e}")
            for listener in list(self._listeners):
                try:
                    listener(e)
                except Exception:
                    logger.exception("Summarization failure listener raised")
            return None
        finally:
            with self._lock:
                self._in_flight = False

    def summarize_now(self) -> Optional[str]:
        """Summarize the unsummarized messages synchronously.

        Returns:
            The new summary, or None if there was nothing worth summarizing.

        Raises:
            LLMProviderError: If the provider call fails; the stored summary
                is left untouched.
        """
        return self._summarize()

    def _summarize(self) -> Optional[str]:
        with self._run_lock:
            context = self.store.context
            boundary = len(context.messages)
            batch = list(context.messages[self.summarized_count : boundary])
            if not batch:
                logger.info("No new messages to summarize")
                return None

            memories = []
            if self.memory_manager is not None:
                query = " ".join(m.text for m in batch[-5:])
                memories = self.memory_manager.relevant_to(
                    query, limit=self.config.relevant_memory_limit
                )

            logger.debug(f"Summarizing {len(batch)} new messages with {len(memories)} memories")
            try:
                summary = self.summarizer.summarize(
                    batch,
                    previous_summary=context.summary or None,
                    relevant_memories=memories,
                )
            except EmptyBatchError:
                logger.info(f"Nothing worth summarizing in {len(batch)} messages")
                self.summarized_count = boundary
                return None

            self.store.replace_summary(summary)
            self.store.save()
            self.summarized_count = boundary
            self.last_summarized_at = self._clock()
            self.runs += 1

            if self.memory_manager is not None:
                self.memory_manager.process_batch(batch, context={"source": "summarization"})
                self.memory_manager.save()

            logger.info("Incremental conversation summarization completed")
            return summary

    def start_periodic(self, interval_seconds: Optional[float] = None) -> None:
        """Check the policy periodically on a daemon thread."""
        if self._periodic_thread is not None:
            return
        interval = interval_seconds or self.config.summarization_interval.total_seconds()

        def loop() -> None:
            while not self._stop_event.wait(interval):
                self.check_and_trigger()

        self._periodic_thread = threading.Thread(target=loop, name="summary-timer", daemon=True)
        self._periodic_thread.start()

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until the in-flight run, if any, has finished."""
        future = self._future
        if future is not None:
            future.result(timeout=timeout)

    def shutdown(self, final_summary: bool = True) -> None:
        """Stop timers and run a last summarization.

        Failures of the final run are logged and swallowed so closing the
        session is never blocked.
        """
        self._stop_event.set()
        self._cancel_debounce()

        try:
            self.wait()
        except Exception as e:
            logger.error(f"In-flight summarization failed during shutdown: {e}")

        if final_summary and self.unsummarized_count > 0:
            logger.info(f"Triggering summarization on close - {len(self.store)} messages")
            try:
                self.summarize_now()
            except Exception as e:
                logger.error(f"Summarization failed on close: {e}")

        self._executor.shutdown(wait=True)
        if self._periodic_thread is not None:
            self._periodic_thread.join(timeout=1.0)

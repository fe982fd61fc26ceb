from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from queue import Full, Queue
from typing import Callable, Iterable, List, Literal, Optional, Protocol, Union

import requests
from pydantic import BaseModel, Field, ValidationError

from .rep_analyzer import RepAnalysis, analyze_rep
from .segmenter import RepSegment


logger = logging.getLogger(__name__)


DEFAULT_FEEDBACK_URL = "http://127.0.0.1:5173/api/feedback"
DEFAULT_FEEDBACK_TIMEOUT = 10.0
DEFAULT_QUEUE_SIZE = 64


class FeedbackServiceError(RuntimeError):
    """Feedback service answered with a non-success status."""


class FeedbackResult(BaseModel):
    feedback: str
    score: float = Field(ge=0.0, le=100.0)
    classification: Literal["good", "okay", "bad"]


@dataclass(frozen=True)
class FeedbackEvent:
    type: str  # "feedback" | "audio"
    feedback: Optional[FeedbackResult] = None
    audio_base64: Optional[str] = None


def parse_feedback_stream(lines: Iterable[Union[str, bytes]]) -> List[FeedbackEvent]:
    """
    Parse a line-delimited JSON reply into typed events.

    - {"type": "feedback", "data": {...}} -> FeedbackEvent with a validated FeedbackResult
    - {"type": "audio", "data": "<base64>"} -> FeedbackEvent carrying the base64 string
    Blank lines are skipped; malformed lines and unknown types are logged and skipped.
    """
    events: List[FeedbackEvent] = []
    for raw in lines:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        line = raw.strip()
        if not line:
            continue
        try:
            msg = json.loads(line)
        except json.JSONDecodeError:
            logger.warning("Skipping unparsable feedback line: %.120s", line)
            continue
        if not isinstance(msg, dict):
            logger.warning("Skipping non-object feedback line: %.120s", line)
            continue

        kind = msg.get("type")
        if kind == "feedback":
            try:
                result = FeedbackResult(**(msg.get("data") or {}))
            except (TypeError, ValidationError) as exc:
                logger.warning("Invalid feedback payload: %s", exc)
                continue
            events.append(FeedbackEvent(type="feedback", feedback=result))
        elif kind == "audio":
            data = msg.get("data")
            if isinstance(data, str) and data:
                events.append(FeedbackEvent(type="audio", audio_base64=data))
        else:
            logger.debug("Ignoring feedback event of type %r", kind)
    return events


class FeedbackSink(Protocol):
    def request_feedback(self, analysis: RepAnalysis) -> List[FeedbackEvent]:
        ...


class FeedbackClient:
    """
    HTTP client for the external feedback service.

    POSTs the rep analysis record as JSON and reads the streamed NDJSON reply.
    """

    def __init__(
        self,
        url: str = DEFAULT_FEEDBACK_URL,
        *,
        timeout: float = DEFAULT_FEEDBACK_TIMEOUT,
        enable_voice: bool = False,
        enable_rag: bool = False,
        session: Optional[requests.Session] = None,
    ) -> None:
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self.url = url
        self.timeout = float(timeout)
        self.enable_voice = bool(enable_voice)
        self.enable_rag = bool(enable_rag)
        self._session = session if session is not None else requests.Session()

    def request_feedback(self, analysis: RepAnalysis) -> List[FeedbackEvent]:
        body = dict(analysis.to_payload())
        body["enableVoice"] = self.enable_voice
        body["enableRAG"] = self.enable_rag

        with self._session.post(self.url, json=body, stream=True, timeout=self.timeout) as resp:
            if not (200 <= resp.status_code < 300):
                raise FeedbackServiceError(
                    f"feedback service returned {resp.status_code}: {resp.reason}"
                )
            return parse_feedback_stream(resp.iter_lines())

    def close(self) -> None:
        self._session.close()


EventCallback = Callable[[RepAnalysis, FeedbackEvent], None]

_STOP = object()


class FeedbackDispatcher:
    """
    Fire-and-forget hand-off of completed reps to the feedback service.

    - submit() never blocks: segments go onto a bounded queue, and are dropped
      (with a warning) when the queue is full
    - One daemon worker analyzes each segment and calls the sink; every error is
      logged here and never reaches the rep-counting caller
    - Completion order across reps is not guaranteed to consumers
    """

    def __init__(
        self,
        sink: FeedbackSink,
        *,
        on_event: Optional[EventCallback] = None,
        maxsize: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        if maxsize <= 0:
            raise ValueError("maxsize must be positive")
        self.sink = sink
        self.on_event = on_event
        self._queue: Queue = Queue(maxsize=maxsize)
        self._closed = False
        # Guards the closed check and the enqueue so nothing lands behind the stop sentinel
        self._lock = threading.Lock()
        self._thread = threading.Thread(target=self._worker, name="feedback-dispatch", daemon=True)
        self._thread.start()

    @property
    def closed(self) -> bool:
        return self._closed

    def submit(self, segment: RepSegment) -> None:
        with self._lock:
            if self._closed:
                logger.warning("Dispatcher closed; dropping rep #%d", segment.rep_number)
                return
            try:
                self._queue.put_nowait(segment)
            except Full:
                logger.warning("Feedback queue full; dropping rep #%d", segment.rep_number)

    def join(self) -> None:
        """Block until every queued segment has been handled."""
        self._queue.join()

    def close(self, timeout: float = 5.0) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        try:
            self._queue.put(_STOP, timeout=timeout)
        except Full:
            logger.warning("Feedback queue still full on close; worker left running")
            return
        self._thread.join(timeout)

    def _worker(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self._handle(item)
            except Exception:
                logger.exception("Feedback dispatch failed")
            finally:
                self._queue.task_done()

    def _handle(self, segment: RepSegment) -> None:
        analysis = analyze_rep(segment)
        if analysis is None:
            return
        logger.info("Rep analysis: %s", analysis.to_payload())

        events = self.sink.request_feedback(analysis)
        for ev in events:
            if ev.type == "feedback" and ev.feedback is not None:
                logger.info(
                    "Rep #%d feedback: %s (score %.0f/100, %s)",
                    analysis.rep_number, ev.feedback.feedback, ev.feedback.score, ev.feedback.classification,
                )
            if self.on_event is not None:
                self.on_event(analysis, ev)

"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Coalescing many per-key productions into one bulk call.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeAlias

from .background import spawn_background
from .errors import BatchError
from .reporting import events
from .reporting.events import CacheEvent
from .reporting.reporters import Reporter
from .types import CacheMetadata, ProducerContext, V, now_ms, resolve

logger = logging.getLogger("cachify.batch")

BulkProducer: TypeAlias = Callable[[list[Any]], Any]


@dataclass(frozen=True, slots=True)
class BatchValueContext(Generic[V]):
    """Argument of `on_value` callbacks: the production context plus the value."""

    metadata: CacheMetadata
    background: bool
    value: V


OnValue: TypeAlias = Callable[[BatchValueContext[Any]], None]


@dataclass(slots=True)
class _BatchRequest:
    param: Any
    future: asyncio.Future[Any]
    context: ProducerContext
    on_value: OnValue | None


class BatchedProducer:
    """
    Producer for one batch item.

    Calling it enqueues the item and returns a future settled on submission.
    `on_cache_hit` marks the item as handled without enqueueing it.
    """

    __slots__ = ("_batch", "_param", "_on_value", "_handled")

    def __init__(self, batch: Batch, param: Any, on_value: OnValue | None) -> None:
        self._batch = batch
        self._param = param
        self._on_value = on_value
        self._handled = False

    def __call__(self, context: ProducerContext) -> asyncio.Future[Any]:
        future = self._batch._enqueue(self._param, context, self._on_value)
        self._mark_handled()
        return future

    def on_cache_hit(self) -> None:
        self._mark_handled()

    def _mark_handled(self) -> None:
        if self._handled:
            return
        self._handled = True
        self._batch._settle_one()


class Batch:
    """
    One-shot batch of productions.

    Every item added must either be produced or reported as a cache hit
    before the bulk producer runs. The bulk producer is called at most once,
    with the parameters of produced items only, and must return one value per
    parameter in the same order.
    """

    def __init__(
        self,
        bulk: BulkProducer,
        auto_submit: bool = True,
        *,
        reporter: Reporter | None = None,
    ) -> None:
        self._bulk = bulk
        self._auto_submit = auto_submit
        self._reporter = reporter
        self._requests: list[_BatchRequest] = []
        self._outstanding = 0
        self._submitted = False
        self._finished = asyncio.Event()

    @property
    def submitted(self) -> bool:
        return self._submitted

    @property
    def outstanding(self) -> int:
        """Items added but neither produced nor answered from cache yet."""
        return self._outstanding

    def add(self, param: Any, on_value: OnValue | None = None) -> BatchedProducer:
        """
        Add one item and return its producer for `cachified`.

        Raises:
            BatchError: When the batch was already submitted.
        """
        self._ensure_open()
        self._outstanding += 1
        return BatchedProducer(self, param, on_value)

    async def submit(self) -> None:
        """
        Run the bulk producer.

        While items are still outstanding this switches the batch to auto
        submission and waits for it to finish.

        Raises:
            BatchError: When the batch was already submitted.
        """
        if self._outstanding > 0:
            self._auto_submit = True
            await self._finished.wait()
            return
        self._ensure_open()
        self._submitted = True
        await self._run()

    def _ensure_open(self) -> None:
        if self._submitted:
            raise BatchError("Can not add to batch after submission")

    def _enqueue(
        self,
        param: Any,
        context: ProducerContext,
        on_value: OnValue | None,
    ) -> asyncio.Future[Any]:
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._requests.append(
            _BatchRequest(param=param, future=future, context=context, on_value=on_value)
        )
        return future

    def _settle_one(self) -> None:
        self._outstanding -= 1
        if not self._auto_submit or self._outstanding > 0 or self._submitted:
            return
        self._submitted = True
        spawn_background(self._run())

    async def _run(self) -> None:
        requests = list(self._requests)
        try:
            if not requests:
                logger.debug("Batch finished without fresh values to produce")
                return
            params = [request.param for request in requests]
            self._report(events.BATCH_SUBMIT_START, params=params)
            logger.debug("Submitting batch of %d items", len(params))
            try:
                results = await resolve(self._bulk(params))
                results = _as_list(results, len(requests))
            except Exception as error:  # noqa: BLE001
                logger.debug("Batch submission failed: %s", error)
                self._report(events.BATCH_SUBMIT_ERROR, error=error)
                for request in requests:
                    if not request.future.done():
                        request.future.set_exception(error)
                return

            for request, value in zip(requests, results):
                if request.future.done():
                    continue
                if request.on_value is not None:
                    try:
                        request.on_value(
                            BatchValueContext(
                                metadata=request.context.metadata,
                                background=request.context.background,
                                value=value,
                            )
                        )
                    except Exception as error:  # noqa: BLE001
                        request.future.set_exception(error)
                        continue
                request.future.set_result(value)
            self._report(events.BATCH_SUBMIT_SUCCESS, count=len(results))
        finally:
            self._finished.set()

    def _report(self, name: str, **attributes: Any) -> None:
        if self._reporter is None:
            return
        try:
            self._reporter(CacheEvent(name=name, key="", timestamp_ms=now_ms(), attributes=attributes))
        except Exception:  # noqa: BLE001
            logger.warning("Batch reporter failed on %s", name, exc_info=True)


def _as_list(results: Any, expected: int) -> list[Any]:
    if not isinstance(results, Sequence) or isinstance(results, (str, bytes)):
        raise BatchError(f"Bulk producer must return a sequence, got {type(results).__name__}")
    if len(results) != expected:
        raise BatchError(f"Bulk producer returned {len(results)} values for {expected} items")
    return list(results)


def create_batch(
    bulk: BulkProducer,
    auto_submit: bool = True,
    *,
    reporter: Reporter | None = None,
) -> Batch:
    """Create a batch whose items share one call to `bulk`."""
    return Batch(bulk, auto_submit, reporter=reporter)

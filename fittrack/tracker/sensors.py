"""Step sensor abstraction and the reader that feeds the accumulator.

A ``StepSensor`` wraps one platform sensor.  ``choose_sensor`` picks the
cumulative counter when the device has one and falls back to the per-step
detector.  ``SensorReader`` pumps readings into an ``asyncio.Queue`` of
``SensorEvent`` so the accumulator consumes an explicit event stream rather
than a shared callback.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import AsyncIterator, Iterable

from fittrack.tracker.base import Clock, SensorEvent, SensorKind, local_now

logger = logging.getLogger("fittrack.tracker.sensors")


class StepSensor(ABC):
    """One platform step sensor.

    Subclasses yield raw readings from ``readings()``: the cumulative count
    for COUNTER sensors, anything (ignored) for DETECTOR sensors.
    """

    #: Sensor flavour; decides how the accumulator interprets readings.
    KIND: SensorKind = SensorKind.DETECTOR

    @property
    def kind(self) -> SensorKind:
        return self.KIND

    @abstractmethod
    def readings(self) -> AsyncIterator[int | None]:
        """Yield readings until the sensor is closed."""


class ReplaySensor(StepSensor):
    """Replays a fixed sequence of readings, optionally with a delay between them.

    Used by tests and by the step simulator in place of hardware.

    Args:
        kind:     COUNTER (values are cumulative totals) or DETECTOR.
        values:   Readings to emit.  For DETECTOR an int N emits N steps.
        interval: Seconds to sleep between readings.
    """

    def __init__(self, kind: SensorKind, values: Iterable[int], interval: float = 0.0) -> None:
        self.KIND = kind
        self._values = list(values)
        self._interval = interval

    async def readings(self) -> AsyncIterator[int | None]:
        for value in self._values:
            if self.KIND is SensorKind.COUNTER:
                yield value
            else:
                for _ in range(value):
                    yield None
            if self._interval:
                await asyncio.sleep(self._interval)


def choose_sensor(
    counter: StepSensor | None, detector: StepSensor | None
) -> StepSensor | None:
    """Prefer the cumulative counter; fall back to the detector.

    Returns:
        The sensor to use, or None when the device has no step sensor.
    """
    if counter is not None:
        logger.info("Using step counter sensor")
        return counter
    if detector is not None:
        logger.info("Using step detector sensor")
        return detector
    logger.error("No step sensors available on this device")
    return None


class SensorReader:
    """Forward readings from a sensor into an event queue.

    Enqueueing never blocks: the queue is unbounded so a slow consumer can
    only delay processing, not drop steps.
    """

    def __init__(
        self,
        sensor: StepSensor,
        queue: asyncio.Queue[SensorEvent],
        clock: Clock | None = None,
    ) -> None:
        self._sensor = sensor
        self._queue = queue
        self._clock = clock or local_now
        self._emitted = 0

    @property
    def emitted(self) -> int:
        return self._emitted

    def on_reading(self, value: int | None) -> None:
        """Turn one raw reading into a SensorEvent and enqueue it."""
        if self._sensor.kind is SensorKind.COUNTER:
            if value is None:
                logger.warning("Counter sensor delivered an empty reading, skipping")
                return
            event = SensorEvent.counter(int(value), received_at=self._clock())
        else:
            event = SensorEvent.step(received_at=self._clock())
        self._queue.put_nowait(event)
        self._emitted += 1

    async def run(self) -> int:
        """Read the sensor until it is exhausted or the task is cancelled.

        Returns:
            Number of events enqueued.
        """
        async for value in self._sensor.readings():
            try:
                self.on_reading(value)
            except ValueError as exc:
                logger.warning("Dropping invalid sensor reading %r: %s", value, exc)
        logger.debug("Sensor reader finished after %d events", self._emitted)
        return self._emitted

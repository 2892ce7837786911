"""Frame-timestamp sampling driver.

A :class:`FrameSampler` collects ``(system_ms, media_s)`` pairs from a live
frame source until a deadline passes or the source ends. It is a small state
machine (IDLE -> SAMPLING -> COMPLETED) driven entirely by the source's
callbacks: each callback captures, then either re-arms the next callback or
completes the run. Nothing runs in parallel with it, and there is no
cancellation primitive; closing the source stops the run on the next
callback.

Two strategies are available and chosen once per run:

- ``FRAME_ACCURATE``: one capture per decoded-frame callback
  (``request_video_frame_callback``).
- ``POLLING``: display-refresh callbacks (``request_animation_frame``),
  throttled to roughly the target frame rate, also stopping when the host
  surface becomes hidden.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Optional, Protocol, Tuple

import numpy as np

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
RefreshCallback = Callable[[float], None]


class FrameSource(Protocol):
    """What the sampler needs from a video element or equivalent.

    Sources with frame-accurate notifications additionally expose
    ``request_video_frame_callback(callback) -> int`` where ``callback``
    receives ``(now_ms, metadata)``.
    """

    @property
    def current_time(self) -> float:  # media time, seconds
        ...

    @property
    def ended(self) -> bool:
        ...

    @property
    def visible(self) -> bool:
        ...

    def request_animation_frame(self, callback: RefreshCallback) -> int:
        ...


class SamplerKind(str, Enum):
    FRAME_ACCURATE = "rVFC"
    POLLING = "rAF"


class SamplerState(str, Enum):
    IDLE = "idle"
    SAMPLING = "sampling"
    COMPLETED = "completed"


def perf_clock_ms() -> float:
    return time.perf_counter() * 1000.0


def detect_sampler(source: Any) -> SamplerKind:
    """Pick the frame-accurate strategy when the source supports it."""
    if callable(getattr(source, "request_video_frame_callback", None)):
        return SamplerKind.FRAME_ACCURATE
    return SamplerKind.POLLING


def _readonly(values: Iterable[float]) -> np.ndarray:
    a = np.array(values, dtype=np.float64).reshape(-1)
    a.setflags(write=False)
    return a


@dataclass(frozen=True, eq=False)
class SampleBatch:
    """Timestamp pairs captured during one run, in capture order."""

    system_ms: np.ndarray
    media_s: np.ndarray
    sampler: SamplerKind = SamplerKind.FRAME_ACCURATE

    def __post_init__(self) -> None:
        system = _readonly(self.system_ms)
        media = _readonly(self.media_s)
        if system.size != media.size:
            raise ValueError(
                f"system/media timestamp counts differ ({system.size} != {media.size})"
            )
        object.__setattr__(self, "system_ms", system)
        object.__setattr__(self, "media_s", media)
        object.__setattr__(self, "sampler", SamplerKind(self.sampler))

    def __len__(self) -> int:
        return int(self.system_ms.size)

    @classmethod
    def from_pairs(
        cls,
        pairs: Iterable[Tuple[float, float]],
        sampler: SamplerKind = SamplerKind.FRAME_ACCURATE,
    ) -> "SampleBatch":
        rows = [(float(s), float(m)) for s, m in pairs]
        return cls(
            system_ms=[s for s, _ in rows],
            media_s=[m for _, m in rows],
            sampler=sampler,
        )

    def pairs(self) -> list[tuple[float, float]]:
        return list(zip(self.system_ms.tolist(), self.media_s.tolist()))


class FrameSampler:
    """Callback-driven collector for one probe run.

    Args:
        source: frame source (see :class:`FrameSource`).
        duration_ms: collection window measured on ``clock``.
        target_fps: nominal frame rate, used by the polling throttle.
        throttle_factor: fraction of the nominal interval that must elapse
            between two polling captures.
        clock: monotonic clock in milliseconds.
        kind: force a strategy instead of detecting it from ``source``.
    """

    def __init__(
        self,
        source: FrameSource,
        duration_ms: float = 5000.0,
        target_fps: float = 30.0,
        throttle_factor: float = 0.8,
        clock: Optional[Clock] = None,
        kind: Optional[SamplerKind] = None,
    ) -> None:
        self.source = source
        self.duration_ms = float(duration_ms)
        self.target_fps = float(target_fps)
        self.throttle_factor = float(throttle_factor)
        self.clock: Clock = clock or perf_clock_ms
        self.kind = SamplerKind(kind) if kind is not None else detect_sampler(source)
        self.state = SamplerState.IDLE
        self._system: list[float] = []
        self._media: list[float] = []
        self._deadline = 0.0
        self._last_capture: Optional[float] = None
        self._on_complete: Optional[Callable[[SampleBatch], None]] = None

    @property
    def min_capture_interval_ms(self) -> float:
        return (1000.0 / self.target_fps) * self.throttle_factor

    def __len__(self) -> int:
        return len(self._system)

    def start(self, on_complete: Callable[[SampleBatch], None]) -> None:
        """Arm the first callback; ``on_complete`` receives the batch once."""
        if self.state is not SamplerState.IDLE:
            raise RuntimeError(f"sampler already {self.state.value}")
        self._on_complete = on_complete
        self._deadline = self.clock() + self.duration_ms
        self.state = SamplerState.SAMPLING
        logger.debug(
            "Sampling with %s for %.0f ms (target %.1f fps)",
            self.kind.value,
            self.duration_ms,
            self.target_fps,
        )
        self._arm()

    async def collect(self) -> SampleBatch:
        """Run to completion on the current event loop and return the batch."""
        loop = asyncio.get_running_loop()
        done: asyncio.Future[SampleBatch] = loop.create_future()

        def _set(batch: SampleBatch) -> None:
            if not done.done():
                done.set_result(batch)

        def _resolve(batch: SampleBatch) -> None:
            # Sources may fire from a capture thread
            loop.call_soon_threadsafe(_set, batch)

        self.start(_resolve)
        return await done

    def _arm(self) -> None:
        if self.kind is SamplerKind.FRAME_ACCURATE:
            self.source.request_video_frame_callback(self._on_video_frame)
        else:
            self.source.request_animation_frame(self._on_refresh)

    def _stamp(self) -> None:
        self._system.append(float(self.clock()))
        self._media.append(float(self.source.current_time or 0.0))

    def _on_video_frame(self, now: float, metadata: Optional[Mapping[str, Any]] = None) -> None:
        if self.state is not SamplerState.SAMPLING:
            return
        self._stamp()
        if self.clock() < self._deadline and not self.source.ended:
            self._arm()
        else:
            self._complete()

    def _on_refresh(self, now: float) -> None:
        if self.state is not SamplerState.SAMPLING:
            return
        if self._last_capture is None or now - self._last_capture >= self.min_capture_interval_ms:
            self._stamp()
            self._last_capture = now
        if self.clock() < self._deadline and not self.source.ended and self.source.visible:
            self._arm()
        else:
            self._complete()

    def _complete(self) -> None:
        batch = SampleBatch(system_ms=self._system, media_s=self._media, sampler=self.kind)
        # Hand the samples over; the sampler keeps no reference to them
        self._system = []
        self._media = []
        self.state = SamplerState.COMPLETED
        callback, self._on_complete = self._on_complete, None
        logger.debug("Sampling finished with %d samples", len(batch))
        if callback is not None:
            callback(batch)

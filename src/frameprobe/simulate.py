"""Deterministic simulated video source on a virtual clock.

Produces frame and refresh callbacks with configurable frame rate, jitter,
dropped frames, media-clock rate error and repeating IFI patterns, without
any real video. Time only advances when a pending callback is delivered, so
a five-second probe completes instantly.

Callbacks are queued on request. Inside a running asyncio loop each queued
callback is delivered by ``loop.call_soon``; without a loop, call
:meth:`SimulatedVideo.step` or :meth:`SimulatedVideo.run_until_idle`.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Any, Callable, Deque, Iterator, List, Optional, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class SimulationConfig(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    fps: float = Field(30.0, gt=0.0, le=1000.0)
    refresh_hz: float = Field(60.0, gt=0.0, le=1000.0)
    frame_callbacks: bool = True  # expose frame-accurate callbacks
    jitter_ms: float = Field(0.0, ge=0.0)  # std of presentation-time noise
    drop_every: int = Field(0, ge=0)  # drop every n-th frame (0 = never)
    drop_probability: float = Field(0.0, ge=0.0, lt=1.0)
    media_rate: float = Field(1.0, gt=0.0)  # media clock speed vs system clock
    pattern_ms: Optional[List[float]] = None  # repeating IFI pattern, overrides fps
    media_duration_s: Optional[float] = Field(None, gt=0.0)  # end of stream
    hidden_after_ms: Optional[float] = Field(None, ge=0.0)
    start_ms: float = 1000.0
    seed: int = 0

    @field_validator("drop_every")
    @classmethod
    def _keep_some_frames(cls, v: int) -> int:
        if v == 1:
            raise ValueError("drop_every=1 would drop every frame")
        return v


class VirtualClock:
    def __init__(self, start_ms: float = 0.0) -> None:
        self._t = float(start_ms)

    def __call__(self) -> float:
        return self._t

    def advance_to(self, t_ms: float) -> None:
        if t_ms > self._t:
            self._t = float(t_ms)


# Frames due within this margin of a refresh tick are shown on that tick
TICK_EPS_MS = 1e-6

_Pending = Tuple[float, Optional[float], int, Callable[..., None], Tuple[Any, ...]]


class SimulatedVideo:
    """Polling-only source: exposes display-refresh callbacks."""

    def __init__(self, cfg: Optional[SimulationConfig] = None) -> None:
        self.cfg = cfg or SimulationConfig()
        self.clock = VirtualClock(self.cfg.start_ms)
        self._frames = self._frame_times()
        self._next_frame: Optional[Tuple[float, float]] = next(self._frames)
        self._next_tick = self.cfg.start_ms
        self._media_s = 0.0
        self._presented = 0
        self._closed = False
        self._pending: Deque[_Pending] = deque()
        self._handle = 0

    @property
    def current_time(self) -> float:
        return self._media_s

    @property
    def ended(self) -> bool:
        if self._closed:
            return True
        limit = self.cfg.media_duration_s
        return limit is not None and self._media_s >= limit

    @property
    def visible(self) -> bool:
        hidden = self.cfg.hidden_after_ms
        return hidden is None or self.clock() - self.cfg.start_ms < hidden

    @property
    def presented_frames(self) -> int:
        return self._presented

    def close(self) -> None:
        """Stop playback; running probes finish on their next callback."""
        self._closed = True

    def request_animation_frame(self, callback: Callable[[float], None]) -> int:
        tick = self._next_tick
        self._next_tick += 1000.0 / self.cfg.refresh_hz
        media: Optional[float] = None
        shown = 0
        while self._next_frame is not None and self._next_frame[0] <= tick + TICK_EPS_MS:
            media = self._next_frame[1]
            shown += 1
            self._advance_frame()
        return self._schedule(tick, media, shown, callback, (tick,))

    def step(self) -> bool:
        """Deliver the oldest pending callback; False when none is queued."""
        if not self._pending:
            return False
        t_ms, media, shown, callback, args = self._pending.popleft()
        self.clock.advance_to(t_ms)
        if media is not None:
            self._media_s = media
        self._presented += shown
        callback(*args)
        return True

    def run_until_idle(self, max_steps: int = 1_000_000) -> int:
        steps = 0
        while steps < max_steps and self.step():
            steps += 1
        return steps

    def _advance_frame(self) -> None:
        self._next_frame = next(self._frames, None)

    def _schedule(
        self,
        t_ms: float,
        media: Optional[float],
        shown: int,
        callback: Callable[..., None],
        args: Tuple[Any, ...],
    ) -> int:
        self._pending.append((t_ms, media, shown, callback, args))
        self._handle += 1
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return self._handle
        loop.call_soon(self.step)
        return self._handle

    def _frame_times(self) -> Iterator[Tuple[float, float]]:
        """Yield ``(presentation_ms, media_s)`` for each presented frame."""
        cfg = self.cfg
        rng = np.random.default_rng(cfg.seed)
        nominal_ms = 1000.0 / cfg.fps
        pattern = cfg.pattern_ms or [nominal_ms]
        t_nominal = cfg.start_ms
        last = cfg.start_ms
        k = 0
        while True:
            t_nominal += pattern[k % len(pattern)]
            k += 1
            dropped = (cfg.drop_every and k % cfg.drop_every == 0) or (
                cfg.drop_probability > 0.0 and rng.random() < cfg.drop_probability
            )
            if dropped:
                continue
            t = t_nominal
            if cfg.jitter_ms > 0.0:
                t += float(rng.normal(0.0, cfg.jitter_ms))
            # Presentation order is preserved under jitter
            t = max(t, last + 0.1)
            last = t
            yield t, k * nominal_ms * cfg.media_rate / 1000.0


class SimulatedFrameAccurateVideo(SimulatedVideo):
    """Source that also delivers one callback per presented frame."""

    def request_video_frame_callback(self, callback: Callable[[float, Any], None]) -> int:
        frame = self._next_frame
        if frame is None:  # pragma: no cover - the frame generator is endless
            raise RuntimeError("no more frames")
        self._advance_frame()
        t_ms, media = frame
        metadata = {
            "mediaTime": media,
            "presentedFrames": self._presented + 1,
            "expectedDisplayTime": t_ms,
        }
        return self._schedule(t_ms, media, 1, callback, (t_ms, metadata))


def simulated_source(cfg: Optional[SimulationConfig] = None) -> SimulatedVideo:
    """Build the source variant matching ``cfg.frame_callbacks``."""
    cfg = cfg or SimulationConfig()
    if cfg.frame_callbacks:
        return SimulatedFrameAccurateVideo(cfg)
    return SimulatedVideo(cfg)

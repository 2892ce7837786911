from __future__ import annotations

import asyncio

import numpy as np
import pytest

from frameprobe.sampler import (
    FrameSampler,
    SampleBatch,
    SamplerKind,
    SamplerState,
    detect_sampler,
)
from frameprobe.simulate import SimulationConfig, simulated_source


def _collect_sync(sampler: FrameSampler, source) -> SampleBatch:
    out: list[SampleBatch] = []
    sampler.start(out.append)
    source.run_until_idle()
    assert len(out) == 1
    return out[0]


def test_capability_detection() -> None:
    assert detect_sampler(simulated_source(SimulationConfig())) is SamplerKind.FRAME_ACCURATE
    polling = simulated_source(SimulationConfig(frame_callbacks=False))
    assert detect_sampler(polling) is SamplerKind.POLLING
    assert detect_sampler(object()) is SamplerKind.POLLING


def test_frame_accurate_run_state_machine() -> None:
    source = simulated_source(SimulationConfig(fps=30.0))
    sampler = FrameSampler(source, duration_ms=1000.0, target_fps=30.0, clock=source.clock)
    assert sampler.state is SamplerState.IDLE
    batch = _collect_sync(sampler, source)
    assert sampler.state is SamplerState.COMPLETED
    assert batch.sampler is SamplerKind.FRAME_ACCURATE
    assert 29 <= len(batch) <= 31
    assert np.allclose(np.diff(batch.system_ms), 1000.0 / 30.0)
    # the sampler keeps nothing after hand-off
    assert len(sampler) == 0
    with pytest.raises(RuntimeError):
        sampler.start(lambda b: None)


def test_batch_is_read_only() -> None:
    batch = SampleBatch.from_pairs([(0.0, 0.0), (33.3, 0.0333)])
    assert len(batch) == 2
    with pytest.raises(ValueError):
        batch.system_ms[0] = 1.0
    assert batch.pairs() == [(0.0, 0.0), (33.3, 0.0333)]
    with pytest.raises(ValueError):
        SampleBatch(system_ms=[0.0, 1.0], media_s=[0.0])


def test_polling_throttles_to_target_rate() -> None:
    source = simulated_source(SimulationConfig(fps=30.0, refresh_hz=60.0, frame_callbacks=False))
    sampler = FrameSampler(source, duration_ms=2000.0, target_fps=30.0, clock=source.clock)
    batch = _collect_sync(sampler, source)
    assert batch.sampler is SamplerKind.POLLING
    ifis = np.diff(batch.system_ms)
    # 60 Hz refresh with a 30 fps target captures every second refresh
    assert np.allclose(ifis, 2000.0 / 60.0)
    assert 58 <= len(batch) <= 62


def test_polling_stops_when_hidden() -> None:
    cfg = SimulationConfig(frame_callbacks=False, hidden_after_ms=200.0)
    source = simulated_source(cfg)
    sampler = FrameSampler(source, duration_ms=5000.0, clock=source.clock)
    batch = _collect_sync(sampler, source)
    assert batch.system_ms[-1] - cfg.start_ms <= 250.0


def test_end_of_stream_and_close_end_the_run() -> None:
    source = simulated_source(SimulationConfig(media_duration_s=0.5))
    sampler = FrameSampler(source, duration_ms=5000.0, clock=source.clock)
    batch = _collect_sync(sampler, source)
    assert batch.media_s[-1] >= 0.5
    assert batch.system_ms[-1] - 1000.0 < 600.0

    source = simulated_source(SimulationConfig())
    sampler = FrameSampler(source, duration_ms=5000.0, clock=source.clock)
    out: list[SampleBatch] = []
    sampler.start(out.append)
    for _ in range(10):
        source.step()
    source.close()
    source.run_until_idle()
    assert len(out) == 1
    assert len(out[0]) == 11


def test_collect_awaits_completion() -> None:
    source = simulated_source(SimulationConfig(fps=25.0))
    sampler = FrameSampler(source, duration_ms=400.0, target_fps=25.0, clock=source.clock)
    batch = asyncio.run(sampler.collect())
    assert sampler.state is SamplerState.COMPLETED
    assert 9 <= len(batch) <= 11

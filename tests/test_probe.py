from __future__ import annotations

import asyncio
import json

import numpy as np
import pytest

from frameprobe.config import ProbeConfig
from frameprobe.probe import analyze_batch, run_probe, run_probe_sync
from frameprobe.sampler import SampleBatch, SamplerKind
from frameprobe.simulate import SimulationConfig, simulated_source


def _batch_from_ifis(ifis, start_ms: float = 1000.0) -> SampleBatch:
    system = start_ms + np.concatenate([[0.0], np.cumsum(ifis)])
    media = (system - start_ms) / 1000.0
    return SampleBatch(system_ms=system, media_s=media)


def test_constant_intervals() -> None:
    system = 1000.0 + 33.33 * np.arange(50)
    batch = SampleBatch(system_ms=system, media_s=(system - 1000.0) / 1000.0)
    report = analyze_batch(batch)
    assert report.n_frames == 50
    assert report.ifi.mean_ms == pytest.approx(33.33, abs=1e-3)
    assert report.ifi.std_ms == pytest.approx(0.0, abs=1e-3)
    assert report.ifi.cv == pytest.approx(0.0, abs=1e-5)
    assert report.fps_est == pytest.approx(30.0, abs=0.01)
    assert report.ifi.drop_rate == 0.0
    assert report.drift.mean_ms_per_frame == pytest.approx(0.0, abs=1e-3)
    assert report.duration_ms == pytest.approx(49 * 33.33, abs=1e-3)


def test_single_long_gap_counts_as_drop() -> None:
    ifis = [33.0] * 28 + [200.0]
    report = analyze_batch(_batch_from_ifis(ifis), ProbeConfig(target_fps=30.0))
    assert report.raw.ifi_count == 29
    assert report.ifi.drop_count == 1
    assert report.ifi.drop_rate == round(1 / 29, 6)


def test_drop_threshold_floors_target_fps() -> None:
    # 5 fps target is floored to 10 fps -> 300 ms threshold
    ifis = [100.0] * 10 + [400.0]
    report = analyze_batch(_batch_from_ifis(ifis), ProbeConfig(target_fps=5.0))
    assert report.ifi.drop_count == 1


@pytest.mark.parametrize("n", [0, 1])
def test_degenerate_batches(n: int) -> None:
    batch = SampleBatch(system_ms=[5.0] * n, media_s=[0.0] * n)
    report = analyze_batch(batch)
    assert report.n_frames == n
    assert report.duration_ms == 0.0
    assert report.fps_est == 0.0
    d = report.to_dict()
    for key in ("meanMs", "medianMs", "stdMs", "cv", "p90Ms", "p99Ms", "dropRate"):
        assert d["ifi"][key] == 0.0
    assert d["ifi"]["acf"] == {"bestLag": 0, "bestCorr": 0.0}
    assert d["ifi"]["spectrum"] == {"peakFreqHz": 0.0, "peakStrength": 0.0}
    assert set(d["drift"].values()) == {0.0}
    assert d["raw"] == {"samples": [5.0] * n, "ifiCount": 0}


def test_repeated_frames_show_up_in_acf() -> None:
    ifis = ([33.0] * 4 + [66.0]) * 10
    report = analyze_batch(_batch_from_ifis(ifis[:48]))
    assert report.ifi.acf.best_lag == 5
    assert report.ifi.acf.best_corr > 0.5


def test_periodic_jitter_shows_up_in_spectrum() -> None:
    k = np.arange(149)
    # 6-frame modulation period at ~30 fps -> 5 Hz
    ifis = 1000.0 / 30.0 + 2.0 * np.sin(2 * np.pi * k / 6.0)
    report = analyze_batch(_batch_from_ifis(ifis))
    assert abs(report.ifi.spectrum.peak_freq_hz - 5.0) <= 30.0 / 256 + 0.01
    assert report.ifi.spectrum.peak_strength > 0.05


def test_report_shape_and_preview() -> None:
    report = analyze_batch(_batch_from_ifis([33.3] * 20))
    d = report.to_dict()
    assert set(d) == {"sampler", "nFrames", "durationMs", "fpsEst", "ifi", "drift", "raw"}
    assert set(d["drift"]) == {
        "meanMsPerFrame",
        "medianMsPerFrame",
        "stdMsPerFrame",
        "p90MsPerFrame",
    }
    assert len(d["raw"]["samples"]) == 5
    assert d["raw"]["ifiCount"] == 20
    assert json.loads(report.to_json())["nFrames"] == 21


def test_run_probe_on_simulated_source() -> None:
    source = simulated_source(SimulationConfig(fps=30.0, media_rate=0.95))
    cfg = ProbeConfig(duration_ms=2000.0, target_fps=30.0)
    report = asyncio.run(run_probe(source, cfg, clock=source.clock))
    assert report.sampler == SamplerKind.FRAME_ACCURATE.value
    assert report.fps_est == pytest.approx(30.0, abs=0.1)
    assert report.ifi.drop_rate == 0.0
    # media clock runs slow, so the system clock outruns it every frame
    assert report.drift.mean_ms_per_frame == pytest.approx(1000.0 / 30.0 * 0.05, abs=1e-3)


def test_stalls_are_drops_for_frame_callbacks() -> None:
    stall = [1000.0 / 30.0] * 9 + [400.0 / 3.0]
    source = simulated_source(SimulationConfig(pattern_ms=stall))
    report = run_probe_sync(source, ProbeConfig(duration_ms=3000.0), clock=source.clock)
    assert report.sampler == "rVFC"
    assert report.ifi.drop_count >= 3
    assert report.ifi.p99_ms == pytest.approx(400.0 / 3.0, abs=1e-3)


def test_stalls_show_up_as_drift_when_polling() -> None:
    # refresh polling keeps a steady IFI; the media clock stalls instead
    stall = [1000.0 / 30.0] * 9 + [400.0 / 3.0]
    source = simulated_source(SimulationConfig(frame_callbacks=False, pattern_ms=stall))
    report = run_probe_sync(source, ProbeConfig(duration_ms=3000.0), clock=source.clock)
    assert report.sampler == "rAF"
    assert report.ifi.mean_ms == pytest.approx(1000.0 / 30.0, abs=0.5)
    assert report.ifi.drop_count == 0
    assert report.drift.std_ms_per_frame > 1.0


@pytest.mark.parametrize("n", [48, 60, 100, 150])
@pytest.mark.parametrize("period", range(2, 9))
def test_periodic_intervals_report_the_fundamental_lag(period: int, n: int) -> None:
    pattern = [33.0] * (period - 1) + [66.0]
    ifis = (pattern * (n // period + 1))[:n]
    report = analyze_batch(_batch_from_ifis(ifis))
    assert report.ifi.acf.best_lag == period


def test_three_step_cycle_reports_lag_three() -> None:
    report = analyze_batch(_batch_from_ifis([30.0, 40.0, 50.0] * 20))
    assert report.ifi.acf.best_lag == 3
    assert report.ifi.acf.best_corr > 0.9

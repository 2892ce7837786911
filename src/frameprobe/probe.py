"""Timing probe: sample a frame source and compute timing diagnostics.

Typical use::

    report = await run_probe(video, ProbeConfig(duration_ms=5000, target_fps=30))
    print(report.to_json(indent=2))
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import numpy as np

from .acf import autocorr, best_lag
from .config import ProbeConfig
from .report import (
    AcfSummary,
    DriftStats,
    IfiStats,
    MetricsReport,
    RawPreview,
    SpectrumSummary,
)
from .sampler import Clock, FrameSampler, FrameSource, SampleBatch
from .spectrum import dominant_frequency, magnitude_fft
from .stats import (
    center,
    diffs,
    mean,
    median,
    percentile,
    round_metric,
    safe_div,
    stddev,
    subtract,
    summarize,
)

logger = logging.getLogger(__name__)


def analyze_batch(batch: SampleBatch, config: Optional[ProbeConfig] = None) -> MetricsReport:
    """Compute the metrics report for one captured batch.

    Pure and total: empty or singleton batches produce zeroed statistics.
    """
    cfg = config or ProbeConfig()
    system = batch.system_ms
    n = len(batch)

    # Inter-frame intervals on the system clock
    ifis = diffs(system)
    mean_ifi = mean(ifis)
    std_ifi = stddev(ifis)
    fps_est = 1000.0 / mean_ifi if mean_ifi > 0 else 0.0

    # Media clock deltas in ms against system deltas
    media_dt = diffs(batch.media_s) * 1000.0
    drift = subtract(ifis, media_dt)
    drift_stats = summarize(drift)

    # Periodicity (looping, repeated frames) on the centered IFI series
    centered = center(ifis)
    acf = autocorr(centered, min(cfg.max_acf_lag, ifis.size // 2))
    peak_lag = best_lag(acf)
    peak = dominant_frequency(magnitude_fft(centered), fps_est or cfg.fallback_sample_rate)

    drop_count = int(np.count_nonzero(ifis > cfg.drop_threshold_ms))
    drop_rate = safe_div(drop_count, ifis.size)

    duration = float(system[-1] - system[0]) if n else 0.0
    logger.debug(
        "Analyzed %d frames: mean IFI %.3f ms, %d drops, ACF lag %d",
        n,
        mean_ifi,
        drop_count,
        peak_lag.lag,
    )

    return MetricsReport(
        sampler=batch.sampler.value,
        n_frames=n,
        duration_ms=round_metric(duration),
        fps_est=round_metric(fps_est),
        ifi=IfiStats(
            mean_ms=round_metric(mean_ifi),
            median_ms=round_metric(median(ifis)),
            std_ms=round_metric(std_ifi),
            cv=round_metric(safe_div(std_ifi, mean_ifi), 6),
            p90_ms=round_metric(percentile(ifis, 0.9)),
            p99_ms=round_metric(percentile(ifis, 0.99)),
            drop_rate=round_metric(drop_rate, 6),
            drop_count=drop_count,
            acf=AcfSummary(best_lag=peak_lag.lag, best_corr=round_metric(peak_lag.corr, 6)),
            spectrum=SpectrumSummary(
                peak_freq_hz=round_metric(peak.freq_hz, 4),
                peak_strength=round_metric(peak.strength, 6),
            ),
        ),
        drift=DriftStats(
            mean_ms_per_frame=round_metric(drift_stats.mean),
            median_ms_per_frame=round_metric(drift_stats.median),
            std_ms_per_frame=round_metric(drift_stats.std),
            p90_ms_per_frame=round_metric(drift_stats.p90),
        ),
        raw=RawPreview(
            samples=tuple(round_metric(s) for s in system[: cfg.preview_samples].tolist()),
            ifi_count=int(ifis.size),
        ),
    )


async def run_probe(
    source: FrameSource,
    config: Optional[ProbeConfig] = None,
    *,
    clock: Optional[Clock] = None,
) -> MetricsReport:
    """Sample ``source`` for ``config.duration_ms`` and return its report.

    The sampling strategy is detected from the source once, at start. The
    run ends at the deadline, at end of stream, or (polling only) when the
    source becomes hidden. A source that never fires callbacks never
    completes.
    """
    cfg = config or ProbeConfig()
    sampler = FrameSampler(
        source,
        duration_ms=cfg.duration_ms,
        target_fps=cfg.target_fps,
        throttle_factor=cfg.throttle_factor,
        clock=clock,
    )
    logger.info(
        "Starting timing probe (sampler=%s, duration=%.0f ms, target=%.1f fps)",
        sampler.kind.value,
        cfg.duration_ms,
        cfg.target_fps,
    )
    batch = await sampler.collect()
    report = analyze_batch(batch, cfg)
    logger.info(
        "Timing probe done: %d frames, %.3f fps, drop rate %.4f",
        report.n_frames,
        report.fps_est,
        report.ifi.drop_rate,
    )
    return report


def run_probe_sync(
    source: FrameSource,
    config: Optional[ProbeConfig] = None,
    *,
    clock: Optional[Clock] = None,
) -> MetricsReport:
    """Blocking wrapper around :func:`run_probe` for callers without a loop."""
    return asyncio.run(run_probe(source, config, clock=clock))

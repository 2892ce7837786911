"""Immutable metrics report returned by a probe run.

Serializes with camelCase keys, e.g.::

    {"sampler": "rVFC", "nFrames": 151, "durationMs": 4999.2, "fpsEst": 30.0,
     "ifi": {"meanMs": 33.3, ..., "acf": {...}, "spectrum": {...}},
     "drift": {"meanMsPerFrame": 0.01, ...},
     "raw": {"samples": [...], "ifiCount": 150}}
"""

from __future__ import annotations

from typing import Any, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Frozen(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class AcfSummary(_Frozen):
    best_lag: int = 0
    best_corr: float = 0.0


class SpectrumSummary(_Frozen):
    peak_freq_hz: float = 0.0
    peak_strength: float = 0.0


class IfiStats(_Frozen):
    mean_ms: float = 0.0
    median_ms: float = 0.0
    std_ms: float = 0.0
    cv: float = 0.0
    p90_ms: float = 0.0
    p99_ms: float = 0.0
    drop_rate: float = 0.0
    drop_count: int = 0
    acf: AcfSummary = Field(default_factory=AcfSummary)
    spectrum: SpectrumSummary = Field(default_factory=SpectrumSummary)


class DriftStats(_Frozen):
    """Positive values mean the system clock advanced more than the media clock."""

    mean_ms_per_frame: float = 0.0
    median_ms_per_frame: float = 0.0
    std_ms_per_frame: float = 0.0
    p90_ms_per_frame: float = 0.0


class RawPreview(_Frozen):
    samples: Tuple[float, ...] = ()
    ifi_count: int = 0


class MetricsReport(_Frozen):
    sampler: str
    n_frames: int
    duration_ms: float
    fps_est: float
    ifi: IfiStats
    drift: DriftStats
    raw: RawPreview

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self, indent: int | None = None) -> str:
        return self.model_dump_json(by_alias=True, indent=indent)

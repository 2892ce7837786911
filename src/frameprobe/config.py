"""Probe configuration.

Field names are snake_case in Python and camelCase on the wire
(``durationMs``, ``targetFps``); either form is accepted on input.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ProbeConfig(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    duration_ms: float = Field(5000.0, gt=0.0)
    target_fps: float = Field(30.0, gt=0.0)
    # Polling strategy captures once at least this fraction of the nominal
    # frame interval has elapsed.
    throttle_factor: float = Field(0.8, gt=0.0, le=1.0)
    # An IFI longer than this many expected intervals counts as a drop.
    drop_threshold_factor: float = Field(3.0, gt=1.0)
    # Floor on target_fps for the expected interval used by drop detection.
    min_expected_fps: float = Field(10.0, gt=0.0)
    max_acf_lag: int = Field(60, ge=1)
    fallback_sample_rate: float = Field(30.0, gt=0.0)
    preview_samples: int = Field(5, ge=0, le=1000)

    @property
    def expected_interval_ms(self) -> float:
        return 1000.0 / max(self.min_expected_fps, self.target_fps)

    @property
    def drop_threshold_ms(self) -> float:
        return self.expected_interval_ms * self.drop_threshold_factor


def load_config(path: Optional[Union[str, Path]] = None, **overrides: Any) -> ProbeConfig:
    """Build a ProbeConfig from an optional JSON file plus keyword overrides.

    Overrides whose value is ``None`` are ignored so CLI flags that were not
    given do not mask values from the file.
    """
    data: dict[str, Any] = {}
    if path is not None:
        data.update(ProbeConfig.model_validate_json(Path(path).read_text()).model_dump())
    data.update({k: v for k, v in overrides.items() if v is not None})
    return ProbeConfig.model_validate(data)

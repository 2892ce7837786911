"""Frame timing probe: IFI statistics, clock drift, ACF and spectral checks."""

from .config import ProbeConfig, load_config
from .probe import analyze_batch, run_probe, run_probe_sync
from .report import MetricsReport
from .sampler import FrameSampler, SampleBatch, SamplerKind, SamplerState, detect_sampler

__all__ = [
    "FrameSampler",
    "MetricsReport",
    "ProbeConfig",
    "SampleBatch",
    "SamplerKind",
    "SamplerState",
    "analyze_batch",
    "detect_sampler",
    "load_config",
    "run_probe",
    "run_probe_sync",
]

__version__ = "0.1.0"

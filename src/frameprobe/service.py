"""FastAPI service exposing the timing probe.

Two entry points:

- ``POST /analyze``: the browser (or any client) collects timestamp pairs
  itself and posts them; the service runs the same analysis as a local
  probe.
- ``POST /simulate``: runs a full probe against a simulated source, useful
  to check thresholds and the report shape without real video.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, List, Optional

from fastapi import FastAPI
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from .config import ProbeConfig
from .probe import analyze_batch, run_probe
from .report import MetricsReport
from .sampler import SampleBatch, SamplerKind
from .simulate import SimulationConfig, simulated_source

logger = logging.getLogger(__name__)


class AnalyzeModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    system_ms: List[float] = Field(default_factory=list)
    media_s: List[float] = Field(default_factory=list)
    sampler: SamplerKind = SamplerKind.FRAME_ACCURATE
    config: ProbeConfig = Field(default_factory=ProbeConfig)

    @model_validator(mode="after")
    def _check_lengths(self) -> "AnalyzeModel":
        if len(self.system_ms) != len(self.media_s):
            raise ValueError("systemMs and mediaS must have the same length")
        return self


class SimulateModel(BaseModel):
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    config: ProbeConfig = Field(default_factory=ProbeConfig)


@dataclass
class State:
    last_report: Optional[MetricsReport] = None


def make_app() -> FastAPI:
    app = FastAPI(title="Frame Timing Probe", version="0.1.0")
    state = State()
    lock = asyncio.Lock()

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/metrics")
    async def get_metrics() -> dict[str, Any]:
        async with lock:
            if state.last_report is None:
                return {"status": "init"}
            return state.last_report.to_dict()

    @app.post("/analyze")
    async def post_analyze(payload: AnalyzeModel) -> dict[str, Any]:
        batch = SampleBatch(
            system_ms=payload.system_ms,
            media_s=payload.media_s,
            sampler=payload.sampler,
        )
        report = analyze_batch(batch, payload.config)
        logger.info("Analyzed %d posted samples (%s)", len(batch), batch.sampler.value)
        async with lock:
            state.last_report = report
        return report.to_dict()

    @app.post("/simulate")
    async def post_simulate(payload: SimulateModel) -> dict[str, Any]:
        source = simulated_source(payload.simulation)
        report = await run_probe(source, payload.config, clock=source.clock)
        async with lock:
            state.last_report = report
        return report.to_dict()

    return app


app = make_app()


def main(host: str = "127.0.0.1", port: int = 8000) -> None:  # pragma: no cover - manual run helper
    import uvicorn

    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":  # pragma: no cover
    main()

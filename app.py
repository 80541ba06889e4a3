"""Call Analytics Engine API — transcript in, complete dashboard-ready analysis out."""

import sys
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
load_dotenv()

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel, Field

from config import settings
from config.lexicon import load_lexicon
from config.schemas import CallRecording, TranscriptMessage
from pipeline.orchestrator import CallAnalyzer, aggregate, segment
from services.llm.client import GenerationError, check_backend_health, get_generator

logger.remove()
logger.add(sys.stderr, level=settings.LOG_LEVEL)

app = FastAPI(
    title="Call Analytics Engine",
    description="Speaker-attributed call transcripts to complete, range-valid analytics records",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class SegmentRequest(BaseModel):
    transcript: str = ""


class AnalyzeRequest(BaseModel):
    transcript: str = ""
    messages: Optional[list[TranscriptMessage]] = None
    include_report: bool = Field(False, description="Also return which source resolved each field")


class AggregateRequest(BaseModel):
    recordings: list[CallRecording] = Field(default_factory=list)


@lru_cache(maxsize=1)
def get_analyzer() -> CallAnalyzer:
    """Analyzer bound to the configured backend and lexicon (built once)."""
    analyzer = CallAnalyzer(get_generator(), lexicon=load_lexicon(settings.LEXICON_PATH))
    logger.info(f"Analyzer ready (backend={analyzer.generator.name})")
    return analyzer


@app.get("/api/health")
async def health(analyzer: CallAnalyzer = Depends(get_analyzer)):
    """Backend reachability."""
    backend = await check_backend_health(analyzer.generator)
    return {"status": "healthy", "backend": backend}


@app.post("/api/segment")
async def segment_transcript(body: SegmentRequest):
    messages = segment(body.transcript)
    return {"messages": [m.model_dump(mode="json", by_alias=True) for m in messages]}


@app.post("/api/analyze")
async def analyze_transcript(body: AnalyzeRequest, analyzer: CallAnalyzer = Depends(get_analyzer)):
    """Analyze one transcript. Malformed backend output is absorbed; only an
    unreachable or failing backend turns into an error (502).
    """
    try:
        resolution = await analyzer.analyze_with_report(body.transcript, body.messages)
    except GenerationError as e:
        logger.error(f"Analysis failed, backend unavailable: {e}")
        raise HTTPException(status_code=502, detail=f"Generation backend failed: {e}")

    response = {"analysis": resolution.analysis.model_dump(mode="json", by_alias=True)}
    if body.include_report:
        response["sources"] = {name: src.value for name, src in resolution.sources.items()}
    return response


@app.post("/api/aggregate")
async def aggregate_recordings(body: AggregateRequest):
    """Fleet-level metrics over the given recordings."""
    metrics = aggregate(body.recordings)
    return metrics.model_dump(mode="json", by_alias=True)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

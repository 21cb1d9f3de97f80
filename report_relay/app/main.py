import json
import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from pydantic import TypeAdapter, ValidationError

from report_relay.app.settings import RelaySettings, get_settings
from report_relay.core.models import ReportEntry
from report_relay.core.topic_store import TopicStore


logger = logging.getLogger(__name__)
settings = get_settings()
topic_store = TopicStore(history_size=settings.history_size)
_report_adapter = TypeAdapter(List[ReportEntry])

app = FastAPI(title="Perception Report Relay", version="0.1.0")

# Allow dashboards on other origins to poll the relay.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_store() -> TopicStore:
    return topic_store


def get_relay_settings() -> RelaySettings:
    return settings


def _parse_report(payload: bytes) -> List[ReportEntry]:
    try:
        entries = _report_adapter.validate_python(json.loads(payload.decode("utf-8")))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise HTTPException(status_code=400, detail=f"Report is not valid JSON: {exc}") from exc
    except ValidationError as exc:
        errors = exc.errors(include_url=False, include_context=False)
        raise HTTPException(status_code=422, detail=jsonable_encoder(errors)) from exc
    if not entries:
        raise HTTPException(status_code=422, detail="Report must contain at least one entry")
    return entries


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/topics")
async def list_topics(store: TopicStore = Depends(get_store)) -> list[dict]:
    return jsonable_encoder([summary.model_dump() for summary in store.summaries()])


@app.post("/topics/{topic:path}", status_code=202)
async def publish(
    topic: str,
    request: Request,
    store: TopicStore = Depends(get_store),
    cfg: RelaySettings = Depends(get_relay_settings),
) -> dict:
    payload = await request.body()
    if len(payload) > cfg.max_payload_bytes:
        raise HTTPException(status_code=413, detail="Payload too large")
    report = _parse_report(payload) if topic in cfg.report_topics else None
    meta = store.append(
        topic,
        payload,
        datetime.now(timezone.utc),
        content_type=request.headers.get("content-type", "application/octet-stream"),
        format=request.headers.get("x-format"),
        frame_id=request.headers.get("x-frame-id"),
        timestamp=request.headers.get("x-timestamp"),
        report=report,
    )
    logger.debug("Stored message %d on %s (%d bytes)", meta.sequence, topic, meta.size)
    return {"topic": topic, "sequence": meta.sequence}


@app.get("/topics/{topic:path}/latest")
async def latest(topic: str, store: TopicStore = Depends(get_store)) -> Response:
    stored = store.latest(topic)
    if not stored:
        raise HTTPException(status_code=404, detail=f"No messages on topic '{topic}'")
    if stored.meta.report is not None:
        return Response(
            content=json.dumps(jsonable_encoder(stored.meta.model_dump())),
            media_type="application/json",
        )
    headers = {"X-Sequence": str(stored.meta.sequence)}
    if stored.meta.frame_id:
        headers["X-Frame-Id"] = stored.meta.frame_id
    if stored.meta.timestamp:
        headers["X-Timestamp"] = stored.meta.timestamp
    return Response(content=stored.payload, media_type=stored.meta.content_type, headers=headers)


@app.get("/topics/{topic:path}/history")
async def history(
    topic: str,
    limit: Optional[int] = Query(default=None, ge=1),
    store: TopicStore = Depends(get_store),
) -> list[dict]:
    return jsonable_encoder([item.model_dump() for item in store.history(topic, limit)])


@app.post("/reset", status_code=204)
async def reset(store: TopicStore = Depends(get_store)) -> None:
    store.reset()

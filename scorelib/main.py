from __future__ import annotations

import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import RedirectResponse, Response
from pydantic import ValidationError

from . import __version__
from .config import AppConfig, load_config
from .csv_codec import decode_upload, parse_document
from .errors import DuplicateDecisionRequired, EmptyImportFile, NotFound, ScoreValidationError, StoreError
from .genres import LegacyGenreFile, add_genre, get_genres, migrate_legacy_genres
from .importer import DuplicateDecision, classify_rows
from .library import ScoreLibrary
from .models import FilterSpec, ScoreFields, ScoreRecord, SortSpec, parse_fields
from .store import JsonCatalogStore
from .view import genre_choices, is_duplicate_title


logger = logging.getLogger(__name__)

# Set by the identity provider's proxy in front of this app.
OWNER_HEADER = "X-Owner-Id"


class State:
    def __init__(self) -> None:
        self.cfg: AppConfig = load_config()
        self.store: Optional[JsonCatalogStore] = None

    def load(self) -> None:
        self.store = JsonCatalogStore(Path(self.cfg.catalog_file))
        if self.cfg.legacy_genres_file:
            result = migrate_legacy_genres(self.store, LegacyGenreFile(Path(self.cfg.legacy_genres_file)))
            if not result.success:
                logger.error("Legacy genre migration failed: %s", result.message)

    def configure(self, cfg: AppConfig) -> None:
        self.cfg = cfg
        self.load()


state = State()

logging.basicConfig(
    level=getattr(logging, state.cfg.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

state.load()

app = FastAPI(title="Score Library", version=__version__)


def require_store() -> JsonCatalogStore:
    if state.store is None:
        state.load()
    if state.store is None:
        raise HTTPException(status_code=500, detail="Record store not configured")
    return state.store


def require_library(request: Request) -> ScoreLibrary:
    owner = str(request.headers.get(OWNER_HEADER, "")).strip()
    if not owner:
        raise HTTPException(status_code=401, detail=f"Missing {OWNER_HEADER} header")
    library = ScoreLibrary(require_store(), owner)
    try:
        library.reload()
    except StoreError as e:
        raise _store_failure(e)
    return library


def _store_failure(e: StoreError) -> HTTPException:
    logger.error("Store failure: %s", e)
    return HTTPException(status_code=503, detail=f"Record store unavailable: {e}")


def _parse_score_id(score_id: str) -> UUID:
    try:
        return UUID(score_id)
    except Exception:
        raise HTTPException(status_code=400, detail="Invalid score_id")


async def _score_fields(request: Request) -> ScoreFields:
    payload = await request.json()
    if not isinstance(payload, dict) or "score" not in payload:
        raise HTTPException(status_code=400, detail="Expected JSON with key 'score'")
    data = payload["score"]
    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="'score' must be an object")
    try:
        return parse_fields(data)
    except ScoreValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid score data: {e}")


def _view_params(request: Request) -> tuple[FilterSpec, SortSpec]:
    q = request.query_params
    try:
        filters = FilterSpec(
            text=q.get("q", ""),
            genre=q.get("genre", ""),
            difficulty=q.get("difficulty", ""),
        )
        sort = SortSpec(field=q.get("sort", "title"), direction=q.get("direction", "asc"))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid view parameters: {e}")
    return filters, sort


def _dump(record: ScoreRecord) -> Dict[str, Any]:
    return record.model_dump(mode="json")


@app.get("/", include_in_schema=False)
def index() -> RedirectResponse:
    return RedirectResponse(url="/docs")


@app.get("/api/status")
def api_status() -> Dict[str, Any]:
    store = require_store()
    try:
        counts = store.counts()
    except StoreError as e:
        raise _store_failure(e)
    return {
        "version": __version__,
        "catalog_file": str(store.catalog_path),
        "legacy_genres_file": state.cfg.legacy_genres_file,
        "counts": counts,
    }


@app.get("/api/scores")
def api_scores(request: Request) -> Dict[str, Any]:
    library = require_library(request)
    filters, sort = _view_params(request)
    view = library.view(filters, sort)
    return {
        "scores": [_dump(r) for r in view.records],
        "shown": view.shown,
        "total": view.total,
        "genres": genre_choices(library.records),
        "filters": filters.model_dump(),
        "sort": sort.model_dump(),
    }


@app.post("/api/scores")
async def api_create_score(request: Request) -> Dict[str, Any]:
    library = require_library(request)
    fields = await _score_fields(request)

    allow_duplicate = request.query_params.get("allow_duplicate", "").lower() in ("1", "true", "yes")
    if not allow_duplicate and is_duplicate_title(library.records, fields.title):
        raise HTTPException(
            status_code=409,
            detail=f'A score with the title "{fields.title}" already exists.',
        )

    try:
        record = library.create(fields)
    except StoreError as e:
        raise _store_failure(e)
    if record is None:
        raise HTTPException(status_code=500, detail="Score was not created")
    return {"ok": True, "score": _dump(record)}


@app.get("/api/score/{score_id}")
def api_score(score_id: str, request: Request) -> Dict[str, Any]:
    library = require_library(request)
    sid = _parse_score_id(score_id)
    try:
        record = library.get(sid)
    except NotFound:
        raise HTTPException(status_code=404, detail="Score not found")
    except StoreError as e:
        raise _store_failure(e)
    return {"score": _dump(record)}


@app.put("/api/score/{score_id}")
async def api_update_score(score_id: str, request: Request) -> Dict[str, Any]:
    library = require_library(request)
    sid = _parse_score_id(score_id)
    fields = await _score_fields(request)
    try:
        record = library.update(sid, fields)
    except NotFound:
        raise HTTPException(status_code=404, detail="Score not found")
    except StoreError as e:
        raise _store_failure(e)
    return {"ok": True, "score": _dump(record)}


@app.delete("/api/score/{score_id}")
def api_delete_score(score_id: str, request: Request) -> Dict[str, Any]:
    library = require_library(request)
    sid = _parse_score_id(score_id)
    try:
        library.delete(sid)
    except NotFound:
        raise HTTPException(status_code=404, detail="Score not found")
    except StoreError as e:
        raise _store_failure(e)
    return {"ok": True}


@app.post("/api/import")
async def api_import(request: Request) -> Dict[str, Any]:
    """Import a CSV document sent as the request body.

    Without ``?decision=`` the import only proceeds when there are no
    duplicate titles; otherwise a 409 with a preview is returned and nothing
    is created, so the client can ask the user and resend.
    """
    library = require_library(request)

    raw_decision = request.query_params.get("decision", "").strip().lower()
    decision: Optional[DuplicateDecision] = None
    if raw_decision:
        try:
            decision = DuplicateDecision(raw_decision)
        except ValueError:
            raise HTTPException(status_code=400, detail="decision must be 'skip', 'import_all' or 'abort'")

    try:
        text = decode_upload(await request.body())
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="CSV file must be UTF-8 encoded")

    def decide(titles: List[str]) -> DuplicateDecision:
        if decision is None:
            raise DuplicateDecisionRequired(titles)
        return decision

    try:
        outcome = library.import_csv(text, decide)
    except EmptyImportFile as e:
        raise HTTPException(status_code=400, detail=f"Failed to import CSV: {e}")
    except DuplicateDecisionRequired as e:
        plan = classify_rows(parse_document(text), library.records)
        raise HTTPException(
            status_code=409,
            detail={
                "message": "Duplicate titles found; resend with ?decision=skip, import_all or abort",
                "duplicate_titles": e.duplicate_titles,
                "total": plan.total,
                "valid": plan.valid,
                "invalid": plan.invalid,
                "duplicates": len(e.duplicate_titles),
            },
        )
    except StoreError as e:
        raise _store_failure(e)

    return {
        "ok": not outcome.aborted,
        "outcome": asdict(outcome),
        "summary": "\n".join(outcome.summary_lines()),
    }


@app.get("/api/export")
def api_export(request: Request) -> Response:
    library = require_library(request)
    filters, sort = _view_params(request)
    filename, document = library.export_csv(filters, sort)
    return Response(
        content=document.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/api/genres")
def api_genres() -> Dict[str, Any]:
    return {"genres": get_genres(require_store())}


@app.post("/api/genres")
async def api_add_genre(request: Request) -> Dict[str, Any]:
    payload = await request.json()
    name = str(payload.get("name", "")).strip() if isinstance(payload, dict) else ""
    if not name:
        raise HTTPException(status_code=400, detail="name required")
    result = add_genre(require_store(), name)
    return result.model_dump()

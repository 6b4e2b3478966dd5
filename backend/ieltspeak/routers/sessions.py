from fastapi import APIRouter, Depends, Query

from ..errors import InvalidInput
from ..history import summarize_sessions
from ..prompts import LEVEL_CODES, LEVELS, assistant_overrides, configure_assistant
from ..schemas import CreateSessionRequest
from ..store import SessionStore, get_store

router = APIRouter(prefix="/api", tags=["sessions"])


def _normalize_level(level: str) -> str:
	value = (level or "").strip().upper()
	if value not in LEVEL_CODES:
		raise InvalidInput(f"level must be one of {','.join(LEVEL_CODES)}", field="level")
	return value


@router.get("/levels")
def list_levels():
	return {"levels": LEVELS}


@router.post("/sessions", status_code=201)
def create_session(req: CreateSessionRequest, store: SessionStore = Depends(get_store)):
	"""Register a practice session before the call starts; the id keys every later step."""
	level = _normalize_level(req.level)
	row = store.create(level=level, user_id=req.user_id, mode=req.mode)
	return {"id": row.id, "level": row.level, "mode": row.mode}


@router.get("/user-sessions")
def user_sessions(user_id: str = Query(..., min_length=1), store: SessionStore = Depends(get_store)):
	return summarize_sessions(store.list_rated_for_user(user_id))


@router.get("/assistant")
def assistant_config(level: str = Query(...)):
	level = _normalize_level(level)
	return {"assistant": configure_assistant(), "overrides": assistant_overrides(level)}

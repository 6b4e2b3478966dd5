import logging

from fastapi import APIRouter, Depends

from ..errors import AppError, BackendMisconfiguration, EvaluationFailed, InvalidInput
from ..evaluation import EvaluationPipeline, coerce_messages
from ..gemini_client import get_client_factory
from ..schemas import RatingRequest
from ..settings import settings
from ..store import ResultCache, SessionStore, get_result_cache, get_store

router = APIRouter(prefix="/api", tags=["rating"])

logger = logging.getLogger(__name__)


@router.post("/rating/{session_id}")
async def rate_session(
	session_id: str,
	req: RatingRequest,
	store: SessionStore = Depends(get_store),
	cache: ResultCache = Depends(get_result_cache),
	client_factory=Depends(get_client_factory),
):
	messages = coerce_messages(req.messages)
	level = (req.level or "").strip()
	if not level:
		row = store.get(session_id)
		level = (row.level or "") if row else ""
	if not level:
		raise InvalidInput("Level is required", field="level")

	try:
		client = client_factory(model=settings.gemini_model)
	except ValueError as err:
		raise BackendMisconfiguration("Google API key not configured") from err
	try:
		pipeline = EvaluationPipeline(client, store, cache)
		return await pipeline.evaluate(session_id, messages, level)
	except AppError:
		raise
	except Exception as e:
		logger.exception("Evaluation failed for session %s", session_id)
		raise EvaluationFailed("failed to process with model", details=str(e)) from e
	finally:
		await client.aclose()

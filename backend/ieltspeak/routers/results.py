from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError

from ..errors import AppError
from ..results import ResultsRetrieval
from ..store import ResultCache, SessionStore, get_result_cache, get_store

router = APIRouter(prefix="/api", tags=["results"])


@router.get("/results/{session_id}")
def get_results(
	session_id: str,
	store: SessionStore = Depends(get_store),
	cache: ResultCache = Depends(get_result_cache),
):
	try:
		return ResultsRetrieval(cache, store).get_result(session_id)
	except SQLAlchemyError as e:
		raise AppError("Database error while fetching session", details=str(e)) from e

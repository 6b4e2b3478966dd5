import logging

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from ..errors import AppError, BackendMisconfiguration, InvalidInput
from ..gemini_client import get_client_factory
from ..schemas import SuggestionRequest
from ..settings import settings

router = APIRouter(prefix="/api", tags=["suggestions"])

logger = logging.getLogger(__name__)


@router.post("/suggestions")
async def stream_suggestion(req: SuggestionRequest, client_factory=Depends(get_client_factory)):
	prompt = (req.prompt or "").strip()
	if not prompt:
		raise InvalidInput("Prompt is required", field="prompt")
	try:
		client = client_factory(model=settings.gemini_model_suggestions)
	except ValueError as err:
		raise BackendMisconfiguration("Google API key not configured") from err

	# Pull the first chunk eagerly so backend failures still map to a 500
	stream = client.stream_generate(prompt)
	try:
		first = await stream.__anext__()
	except StopAsyncIteration:
		first = ""
	except Exception as e:
		await stream.aclose()
		await client.aclose()
		logger.warning("Suggestion backend failed: %s", e)
		raise AppError("Failed to generate content", details=str(e)) from e

	async def body():
		try:
			if first:
				yield first
			async for chunk in stream:
				yield chunk
		except Exception as e:
			# Headers are already sent; end the body early
			logger.warning("Suggestion stream interrupted: %s", e)
		finally:
			await stream.aclose()
			await client.aclose()

	return StreamingResponse(body(), media_type="text/plain", headers={"Cache-Control": "no-cache"})

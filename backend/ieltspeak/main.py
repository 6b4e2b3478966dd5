import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .db import Base, engine, ensure_schema
from .cleanup import purge_stale_results
from .errors import AppError
from .settings import settings
from .store import result_cache
from .routers import health
from .routers import rating
from .routers import results
from .routers import suggestions
from .routers import sessions
from .routers import live

logging.basicConfig(
	level=settings.log_level.upper(),
	format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="IELTSpeak API")
app.include_router(health.router)
app.include_router(rating.router)
app.include_router(results.router)
app.include_router(suggestions.router)
app.include_router(sessions.router)
app.include_router(live.router)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
	if exc.status_code >= 500:
		logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
	return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
	return JSONResponse(
		status_code=400,
		content={
			"error": "Validation Error",
			"code": "VALIDATION_ERROR",
			"details": [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in exc.errors()],
		},
	)


@app.get("/info")
def root():
	return {"status": "ok", "gemini_configured": bool(settings.gemini_api_key)}


async def _cleanup_watcher():
	# Hourly purge of evaluation handoffs nobody came back for
	while True:
		await asyncio.sleep(60 * 60)
		try:
			purge_stale_results(result_cache)
		except Exception:
			logger.exception("Result cache purge failed")


@app.on_event("startup")
async def startup_event():
	# Initialize DB schema
	Base.metadata.create_all(bind=engine)
	# Apply lightweight dev migrations
	try:
		ensure_schema()
	except Exception:
		logger.exception("Schema migration failed")
	# Start periodic cleanup loop
	asyncio.create_task(_cleanup_watcher())

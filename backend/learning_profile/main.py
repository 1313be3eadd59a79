import asyncio
import logging

from fastapi import FastAPI, Request
from starlette.exceptions import HTTPException
from fastapi.responses import JSONResponse

from .db import Base, engine, get_db
from .cleanup import purge_expired_progress
from .settings import settings
from .routers import assessment_progress

logging.basicConfig(
	level=getattr(logging, settings.log_level.upper(), logging.INFO),
	format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Learning Profile Progress API")
app.include_router(assessment_progress.router)


@app.exception_handler(HTTPException)
async def http_error_as_error_body(request: Request, exc: HTTPException):
	# Clients read failures from an "error" field
	return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
	logger.exception("Unhandled error on %s %s", request.method, request.url.path)
	return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.get("/info")
def root():
	return {"status": "ok", "progress_ttl_days": settings.progress_ttl_days}


def _purge_once() -> None:
	db = next(get_db())
	try:
		removed = purge_expired_progress(db)
		if removed:
			logger.info("Purged %d expired progress rows", removed)
	except Exception:
		logger.exception("Expired progress purge failed")
	finally:
		db.close()


async def _cleanup_watcher():
	while True:
		await asyncio.sleep(settings.cleanup_interval_seconds)
		_purge_once()

@app.on_event("startup")
async def startup_event():
	# Initialize DB schema
	Base.metadata.create_all(bind=engine)
	# Best-effort purge at startup
	_purge_once()
	# Start periodic cleanup loop
	asyncio.create_task(_cleanup_watcher())

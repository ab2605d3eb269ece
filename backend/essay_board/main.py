import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .db import Base, engine, ensure_schema, storage_configured
from .errors import SETUP_INSTRUCTIONS, StorageNotConfiguredError
from .settings import settings
from .routers import auth
from .routers import essays
from .routers import comments
from .routers import ai
from . import models  # noqa: F401  (registers tables on Base.metadata)

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)

app = FastAPI(title="Essay Board API")
app.add_middleware(
	CORSMiddleware,
	allow_origins=["*"],
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)
app.include_router(auth.router)
app.include_router(essays.router)
app.include_router(comments.router)
app.include_router(ai.router)


@app.exception_handler(StorageNotConfiguredError)
async def storage_not_configured_handler(request: Request, exc: StorageNotConfiguredError):
	return JSONResponse(
		status_code=503,
		content={"detail": str(exc), "setup_required": True, "instructions": SETUP_INSTRUCTIONS},
	)


@app.get("/info")
def root():
	return {
		"status": "ok",
		"storage_configured": storage_configured(),
		"gemini_configured": bool(settings.gemini_api_key),
		"teacher_login_enabled": bool(settings.teacher_password),
	}


@app.on_event("startup")
async def startup_event():
	if engine is None:
		logger.warning("DATABASE_URL is missing or a placeholder; the board will answer with setup instructions")
		return
	Base.metadata.create_all(bind=engine)
	# Upgrade tables left by earlier releases
	try:
		ensure_schema()
	except Exception:
		logger.exception("Schema upgrade failed")

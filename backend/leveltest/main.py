import logging
import sys

from fastapi import FastAPI

from .settings import settings
from .routers import level_test

logging.basicConfig(
	level=getattr(logging, settings.log_level.upper(), logging.INFO),
	format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
	handlers=[logging.StreamHandler(sys.stdout)],
)

app = FastAPI(title="Level Test API")
app.include_router(level_test.router)

@app.get("/info")
def root():
	return {
		"status": "ok",
		"demo_mode": settings.demo_mode,
		"backend": None if settings.demo_mode else settings.api_base_url,
	}

@app.on_event("shutdown")
async def shutdown_event():
	await level_test.close_backend()

"""ASGI app for running under uvicorn directly.

    uvicorn pepper_cleanup.asgi:app --reload --port 8080

The scheduler lives and dies with the uvicorn lifespan, so each reload
gets a fresh scheduler instead of a second one.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from pepper_cleanup.config import CleanupConfig
from pepper_cleanup.main import Application, register_routes


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    application = Application(CleanupConfig.from_json_file())
    await application.setup()
    register_routes(fastapi_app, application)
    fastapi_app.state.application = application

    await application.start_background_services()
    try:
        yield
    finally:
        await application.shutdown()


app = FastAPI(
    title="Pepper Case Cleanup",
    description="Retention sweep for closed Pepper cases",
    version="1.0.0",
    lifespan=lifespan,
)

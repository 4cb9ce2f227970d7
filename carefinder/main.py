from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from carefinder.api.location import router as location_router
from carefinder.api.nearby import router as nearby_router
from carefinder.api.providers import router as providers_router
from carefinder.config import get_settings
from carefinder.db.session import dispose_engine
from carefinder.errors import InputError
from carefinder.logging_config import get_logger, setup_logging


settings = get_settings()
setup_logging(settings.log_level, json_format=settings.log_json)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await dispose_engine()


app = FastAPI(title="CareFinder", lifespan=lifespan)


@app.exception_handler(InputError)
async def input_error_handler(request: Request, exc: InputError) -> JSONResponse:
    logger.info(f"Rejected request to {request.url.path}: {exc}", extra={"error_type": "input"})
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


app.include_router(location_router)
app.include_router(nearby_router)
app.include_router(providers_router)

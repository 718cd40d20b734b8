from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
from app.models.site import HealthStatus
from app.routes.site_routes import router
from app.services.errors import SiteStoreError
from app.services.site_store import SiteStore
from logger_config import setup_logger

# Logger setup
logger = setup_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Config is read at startup, not at import
    app.state.site_store = SiteStore(Path(config.SITES_DIR), Path(config.TEMP_DIR), config.HOSTING_DOMAIN)
    await app.state.site_store.initialize()
    yield


app = FastAPI(title="Static Site Host", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SiteStoreError)
async def site_store_error_handler(request: Request, exc: SiteStoreError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    message = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
    )
    logger.warning(f"{request.method} {request.url.path} rejected (400): {message}")
    return JSONResponse(status_code=400, content={"error": f"Invalid request: {message}"})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error(f"Unexpected error on {request.method} {request.url.path}: {str(exc)}", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.get("/health", response_model=HealthStatus)
async def health():
    return HealthStatus(status="OK", timestamp=datetime.now(timezone.utc).isoformat())


app.include_router(router)


if __name__ == "__main__":
    logger.info("Starting Static Site Host...")
    logger.info(f"Sites directory: {Path(config.SITES_DIR).absolute()}")
    logger.info(f"Temporary directory: {Path(config.TEMP_DIR).absolute()}")
    logger.info(f"Listening on port {config.PORT}")
    uvicorn.run(app, host=config.HOST, port=config.PORT)

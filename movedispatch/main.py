import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .errors import DomainError
from .logging import configure_logging
from .routes import api_router

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="movedispatch")

app.include_router(api_router)


@app.exception_handler(DomainError)
def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    logger.info(
        "%s %s rejected with %s: %s",
        request.method,
        request.url.path,
        exc.code,
        exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.get("/health", tags=["health"])
def health_check() -> dict:
    return {"status": "ok"}

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import api_router
from app.core.config import get_settings
from sticker_engine import (
    ClientError,
    CredentialInvalid,
    CredentialRequired,
    DecodeError,
    EncodeError,
    GenerationEmpty,
    InvalidRequest,
    JsonFileCredentialStore,
    StickerService,
    TransientError,
)

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings.ensure_directories()
    app.state.sticker_service = StickerService(JsonFileCredentialStore(settings.store_path))
    logger.info("Sticker service ready, settings stored in %s", settings.store_path)
    yield


app = FastAPI(title=settings.app_name, version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)


def _error(status_code: int, code: str, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"code": code, "detail": detail})


@app.exception_handler(CredentialRequired)
async def credential_required_handler(request: Request, exc: CredentialRequired) -> JSONResponse:
    return _error(status.HTTP_402_PAYMENT_REQUIRED, exc.code, "An API key is required to continue.")


@app.exception_handler(CredentialInvalid)
async def credential_invalid_handler(request: Request, exc: CredentialInvalid) -> JSONResponse:
    return _error(status.HTTP_401_UNAUTHORIZED, exc.code, "The stored API key was rejected and has been cleared.")


@app.exception_handler(DecodeError)
async def decode_error_handler(request: Request, exc: DecodeError) -> JSONResponse:
    return _error(status.HTTP_400_BAD_REQUEST, "DECODE_ERROR", str(exc))


@app.exception_handler(EncodeError)
async def encode_error_handler(request: Request, exc: EncodeError) -> JSONResponse:
    logger.error("Export encoding failed: %s", exc)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "ENCODE_ERROR", str(exc))


@app.exception_handler(GenerationEmpty)
async def generation_empty_handler(request: Request, exc: GenerationEmpty) -> JSONResponse:
    return _error(status.HTTP_502_BAD_GATEWAY, "GENERATION_EMPTY", str(exc))


@app.exception_handler(ClientError)
async def client_error_handler(request: Request, exc: ClientError) -> JSONResponse:
    return _error(status.HTTP_400_BAD_REQUEST, "CLIENT_ERROR", str(exc))


@app.exception_handler(TransientError)
async def transient_error_handler(request: Request, exc: TransientError) -> JSONResponse:
    logger.warning("Model service unavailable after retries: %s", exc)
    return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "SERVICE_UNAVAILABLE", str(exc))


@app.exception_handler(InvalidRequest)
async def invalid_request_handler(request: Request, exc: InvalidRequest) -> JSONResponse:
    return _error(status.HTTP_400_BAD_REQUEST, "BAD_REQUEST", str(exc))


@app.get("/health", tags=["Health"])
async def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(api_router)

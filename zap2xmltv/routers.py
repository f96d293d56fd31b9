from collections.abc import AsyncIterator
from pathlib import Path
from typing import Annotated
import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import FileResponse

from zap2xmltv import __version__
from zap2xmltv.config import GuideSettings, get_settings
from zap2xmltv.errors import FetchError
from zap2xmltv.schemas import BuildResponse, HealthResponse, ProvidersResponse
from zap2xmltv.services import (
    build_guide,
    guide_scheduler,
    lookup_providers,
)


logger = logging.getLogger(__name__)

main_router = APIRouter()

SettingsDep = Annotated[GuideSettings, Depends(get_settings)]


async def get_http_client(settings: SettingsDep) -> AsyncIterator[httpx.AsyncClient]:
    """Per-request HTTP client for upstream calls"""
    async with httpx.AsyncClient(timeout=settings.request_timeout_sec) as client:
        yield client


ClientDep = Annotated[httpx.AsyncClient, Depends(get_http_client)]


@main_router.get("/")
async def root() -> dict:
    """Root endpoint with service information"""
    next_run = guide_scheduler.get_next_run_time()

    return {
        "service": "zap2xmltv",
        "version": __version__,
        "next_scheduled_build": next_run.isoformat() if next_run else None,
        "endpoints": {
            "fetch": "/fetch - Manually trigger a guide build (POST)",
            "guide": "/guide - Download the current XMLTV guide",
            "providers": "/providers - List lineups for a postal code",
            "health": "/health - Health check"
        }
    }


@main_router.get("/health", response_model=HealthResponse)
async def health_check(settings: SettingsDep) -> HealthResponse:
    """Health check endpoint"""
    next_run = guide_scheduler.get_next_run_time()
    return HealthResponse(
        status="ok",
        scheduler_running=guide_scheduler.is_running(),
        next_fetch=next_run.isoformat() if next_run else None,
        guide_exists=Path(settings.output_file).is_file(),
    )


@main_router.post("/fetch")
async def trigger_fetch(settings: SettingsDep, client: ClientDep) -> dict:
    """
    Manually trigger a guide build

    Authenticates, fetches every window, writes the guide and rotates history
    """
    logger.info("Manual guide build triggered via API")
    result = await build_guide(settings, client=client)

    if result.get("status") == "failed":
        raise HTTPException(status_code=500, detail=result["error"])
    if result.get("status") == "skipped":
        return result

    return BuildResponse(**result).model_dump()


@main_router.get("/guide")
async def get_guide(settings: SettingsDep) -> FileResponse:
    """Serve the most recently written guide file"""
    path = Path(settings.output_file)
    if not path.is_file():
        raise HTTPException(status_code=404, detail="Guide has not been built yet")
    return FileResponse(path, media_type="application/xml", filename=path.name)


@main_router.get("/providers", response_model=ProvidersResponse)
async def get_providers(
    settings: SettingsDep,
    client: ClientDep,
    country: Annotated[str | None, Query(description="Country code, e.g. USA")] = None,
    zip_code: Annotated[str | None, Query(description="Postal code")] = None,
    language: Annotated[str | None, Query(description="Language tag, e.g. en-us")] = None,
) -> ProvidersResponse:
    """
    List providers for a postal code

    Missing query parameters fall back to the configured values.
    """
    country = country or settings.country
    zip_code = zip_code or settings.zip_code
    language = language or settings.language
    if not zip_code:
        raise HTTPException(status_code=422, detail="zip_code is required")

    try:
        providers = await lookup_providers(client, country, zip_code, language)
    except FetchError as exc:
        raise HTTPException(status_code=502, detail=str(exc))

    return ProvidersResponse(
        country=country,
        zip_code=zip_code,
        language=language,
        count=len(providers),
        providers=providers,
    )

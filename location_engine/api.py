"""
FastAPI Backend for the Location Resolution Engine.

Exposes reverse geocoding and address extraction over HTTP.
CLI (main.py) continues to work independently.
"""

import os
import sys
import logging
from logging.handlers import RotatingFileHandler
from typing import List, Optional

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from location_engine import __version__
from location_engine.config import load_settings
from location_engine.models.geo_context import Country, NormalizedGeocodeResult, ProcessedAddress
from location_engine.services.address_heuristics import extract_location_fields
from location_engine.services.coordinate_utils import format_coordinates
from location_engine.services.fallback_chain import ReverseGeocoder

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(log_dir: Optional[str] = None):
    """
    Send engine logs to stdout and to a rotating file.

    Safe to call more than once; handlers are only attached the first time.
    """
    engine_logger = logging.getLogger("location_engine")
    if engine_logger.handlers:
        return

    engine_logger.setLevel(load_settings().log_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(
        '\033[96m%(asctime)s\033[0m - %(name)s - \033[93m%(levelname)s\033[0m - %(message)s',
        datefmt='%H:%M:%S'
    ))
    engine_logger.addHandler(console_handler)

    log_dir = log_dir or os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "logs")
    os.makedirs(log_dir, exist_ok=True)
    file_handler = RotatingFileHandler(
        os.path.join(log_dir, "location_engine.log"),
        maxBytes=10*1024*1024,  # 10MB per file, keep 5 backups
        backupCount=5,
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    engine_logger.addHandler(file_handler)

    engine_logger.propagate = False


configure_logging()
logger = logging.getLogger(__name__)

# Shared across requests; replaced in tests
reverse_geocoder = ReverseGeocoder()


class ResolveRequest(BaseModel):
    """Request model for the resolve endpoint."""
    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)
    countries: List[Country] = Field(default_factory=list)


class ResolveResponse(BaseModel):
    """Geocoding result plus the fields extracted from it."""
    display_coordinates: str
    geocode: NormalizedGeocodeResult
    match: Optional[ProcessedAddress] = None


app = FastAPI(
    title="Location Resolution API",
    description="Reverse geocoding with provider fallback and address extraction",
    version=__version__
)

# Enable CORS for frontend access
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors with clear messages."""
    error_messages = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        error_messages.append(f"{field}: {error['msg']}")

    return JSONResponse(
        status_code=422,
        content={"detail": "; ".join(error_messages)}
    )


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Location Resolution API",
        "version": __version__,
        "endpoints": {
            "GET /reverse-geocode": "Reverse geocode coordinates",
            "POST /resolve": "Reverse geocode and match against a country registry",
            "GET /health": "Health check"
        }
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/reverse-geocode", response_model=NormalizedGeocodeResult)
async def reverse_geocode(
    lat: float = Query(..., ge=-90.0, le=90.0),
    lng: float = Query(..., ge=-180.0, le=180.0),
):
    """
    Reverse geocode a coordinate pair.

    Never fails on provider outage: a placeholder result is returned instead.
    """
    return await reverse_geocoder.reverse_geocode(lat, lng)


@app.post("/resolve", response_model=ResolveResponse)
async def resolve(request: ResolveRequest):
    """
    Reverse geocode and extract country, locality, region and community.

    Args:
        request: ResolveRequest with coordinates and the country registry

    Returns:
        ResolveResponse; match is null when the country is not in the registry
    """
    result = await reverse_geocoder.reverse_geocode(request.lat, request.lng)
    match = extract_location_fields(result, request.countries)
    if match is None:
        logger.info(f"No country match for {request.lat}, {request.lng}")

    return ResolveResponse(
        display_coordinates=format_coordinates(request.lat, request.lng),
        geocode=result,
        match=match,
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

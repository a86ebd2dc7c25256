"""
FastAPI Application

Main application setup and configuration.

Usage:
    uvicorn api.app:app --reload

    # Or run directly
    python -m api.app
"""

import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.errors import (
    APIError,
    api_error_handler,
    census_error_handler,
    generic_error_handler,
)
from api.routes import cache, census, health, verify
from census.schemas.errors import CensusException


logging.basicConfig(
    level=getattr(logging, os.getenv("CENSUS_LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Census API",
        description="""
HTTP API for Lean-IMT voting census reconstruction.

## Endpoints

- **GET /census/root** - Current census root and size
- **GET /census/size** - Slot count of the current tree or of a given root
- **POST /census/reconstruct** - Rebuild the tree from the subgraph
- **GET /census/proof/{address}** - Inclusion proof of an account
- **GET /census/accounts/{address}** - Weight and slot of an account
- **POST /verify** - Verify a proof offline
- **GET /cache/stats**, **DELETE /cache** - Snapshot cache
- **GET /health** - Health check

Field elements are returned as decimal strings (roots also as 0x hex).
        """,
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register exception handlers
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(CensusException, census_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)

    # Include routers
    app.include_router(health.router)
    app.include_router(census.router)
    app.include_router(verify.router)
    app.include_router(cache.router)

    return app


# Create the application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

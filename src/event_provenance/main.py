# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2024-2026 The Birthmark Standard Foundation

"""Main FastAPI application for the event provenance service."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from . import __version__
from .api import events, status, verification
from .camera import ProvenanceCamera, build_camera
from .config import Settings, settings

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )


def create_app(
    config: Optional[Settings] = None,
    camera: Optional[ProvenanceCamera] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Settings (global settings if None)
        camera: Prebuilt camera; built from config at startup if None
    """
    config = config or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.camera is None
        if owned:
            logger.info(f"Starting provenance camera: {config.device_id}")
            app.state.camera = build_camera(config)

        cam = app.state.camera
        logger.info(f"Signer trust: {cam.status().signer_trust}")

        yield  # Application is running

        if owned:
            cam.close()
            app.state.camera = None
        logger.info("Provenance service stopped")

    app = FastAPI(
        title="Event Provenance Service",
        description="Signed, hash-chained provenance records for camera events",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.camera = camera

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(status.router)
    app.include_router(events.router)
    app.include_router(verification.router)

    @app.get("/")
    def root():
        """Root endpoint with basic info."""
        return {
            "service": "Event Provenance Service",
            "device_id": config.device_id,
            "version": __version__,
        }

    return app


def main(config: Optional[Settings] = None) -> None:
    """Serve the API with uvicorn."""
    config = config or settings
    configure_logging(config.log_level)
    uvicorn.run(
        create_app(config),
        host=config.api_host,
        port=config.api_port,
        workers=1,  # single writer owns the chain cursor
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()

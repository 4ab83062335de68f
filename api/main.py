"""
Installment Balance Platform API - Main Application.

FastAPI application with CORS enabled for the back-office frontend.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from api.dependencies import build_engine_from_env
from api.routers import payments, sales
from services.balance_service import BalanceReconciliationEngine

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def create_app(engine: Optional[BalanceReconciliationEngine] = None) -> FastAPI:
    """
    Build the application.

    Args:
        engine: Pre-built engine; when omitted one is built from the
            environment at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.engine is None:
            app.state.engine = await build_engine_from_env()
        yield

    app = FastAPI(
        title="Installment Balance Platform API",
        description="REST API for credit sales, installment payments and balance reconciliation",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.engine = engine

    # TODO: Restrict origins to the back-office host in production
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["Health"])
    def health_check():
        """
        Health check endpoint.

        Returns the API status and version.
        """
        return {
            "status": "healthy",
            "version": __version__,
            "service": "installment-balance-api",
        }

    app.include_router(sales.router, prefix="/api/v1", tags=["Sales"])
    app.include_router(payments.router, prefix="/api/v1", tags=["Payments"])
    return app


app = create_app()

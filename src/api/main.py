"""
FastAPI application for the forecast calculation engine.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.routes import calculations
from src.config import Config

logging.basicConfig(level=Config.LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

# Create FastAPI app
app = FastAPI(
    title="Forecast Graph Calculation Engine",
    description="Month-by-month evaluation of financial forecast graphs",
    version="1.0.0"
)

# CORS middleware for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(calculations.router)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "app": "Forecast Graph Calculation Engine"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    from src.db.postgres import check_connection
    db_ok, db_msg = check_connection()
    return {
        "status": "healthy" if db_ok else "unhealthy",
        "database": db_msg
    }

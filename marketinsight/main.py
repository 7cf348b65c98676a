import os
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from marketinsight.api import insights
from marketinsight.api.dependencies import get_settings
from marketinsight.utils.logger import configure_logging

# -----------------------------------------------------------------------------
# Load configuration (YAML + .env)
# -----------------------------------------------------------------------------
config = get_settings()

# -----------------------------------------------------------------------------
# Set up logging
# -----------------------------------------------------------------------------
configure_logging(config.logging.model_dump())

# -----------------------------------------------------------------------------
# Initialize FastAPI
# -----------------------------------------------------------------------------
app = FastAPI(
    title=config.app.name,
    version=config.app.version,
)

# -----------------------------------------------------------------------------
# CORS
# -----------------------------------------------------------------------------
allowed_origins = os.getenv("ALLOWED_ORIGINS", "*").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------
app.include_router(
    insights.router,
    tags=["Market Insight"],
)


# -----------------------------------------------------------------------------
# Root
# -----------------------------------------------------------------------------
@app.get("/")
async def root():
    return {"message": f"Welcome to {config.app.name}!"}


# -----------------------------------------------------------------------------
# Startup log
# -----------------------------------------------------------------------------
logging.info(f"✅ {config.app.name} is starting up!")

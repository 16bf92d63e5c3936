"""
ASGI entry point for uvicorn
This module exposes the FastAPI app for use with uvicorn command line
"""

import logging
import os
from pathlib import Path

from config_loader import load_config, setup_logging
from api.main_api import TunerAPI
from services.tuner_server import build_components, create_lifespan

# Ensure logs directory exists
Path("logs").mkdir(exist_ok=True)

# Load configuration
config = load_config(os.environ.get('CONFIG_FILE', 'config/config.yaml'))
setup_logging(config)

logger = logging.getLogger(__name__)

# Initialize components synchronously for uvicorn
logger.info("Initializing application components...")

runner, discovery, probe, sessions = build_components(config)

# Create API (which contains the FastAPI app)
api = TunerAPI(discovery, probe, sessions, config, lifespan=create_lifespan(discovery, sessions))

# Expose the FastAPI app for uvicorn
app = api.app

logger.info("ASGI app ready for uvicorn")

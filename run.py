#!/usr/bin/env python3
"""
Savings Vault System Entry Point

Starts the FastAPI server with the vault registry.
"""

import sys

from core_savings.api import run_server
from core_savings.config import get_config
from core_savings.logging_config import setup_logging


if __name__ == "__main__":
    config = get_config()
    logger = setup_logging(config.log_level, config.log_format, config.log_file)

    logger.info(f"Starting savings vault API on {config.api_host}:{config.api_port}")
    logger.info(f"Admin identity: {config.admin_identity}, storage: {config.storage_backend}")

    try:
        run_server(host=config.api_host, port=config.api_port)
    except KeyboardInterrupt:
        logger.info("Shutting down savings vault API")
    except Exception as e:
        logger.error(f"Error starting server: {e}")
        sys.exit(1)

# HTTP Helper for cloud discovery connections
# SSL-aware session configuration for the vendor discovery API

import aiohttp
import ssl
import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

def create_cloud_session(
    timeout_seconds: float = 10,
    ssl_verify: bool = True,
    ca_cert_path: Optional[str] = None
) -> aiohttp.ClientSession:
    """
    Create properly configured aiohttp session for the HTTPS cloud discovery API
    Prevents connection leaks with proper cleanup and limits
    """
    ssl_context = ssl.create_default_context()

    if not ssl_verify:
        # Disable SSL verification (for intercepting proxies in development)
        ssl_context.check_hostname = False
        ssl_context.verify_mode = ssl.CERT_NONE
        logger.warning("SSL verification disabled for cloud discovery")
    elif ca_cert_path:
        ca_path = Path(ca_cert_path)
        if ca_path.exists():
            ssl_context.load_verify_locations(ca_path)
            logger.info(f"Loaded custom CA certificate: {ca_path}")
        else:
            logger.warning(f"CA certificate not found: {ca_path}")

    connector = aiohttp.TCPConnector(
        ssl=ssl_context,
        limit=5,                    # Discovery is a single request per pass
        force_close=True,           # Force connection cleanup
        enable_cleanup_closed=True  # Additional cleanup
    )

    return aiohttp.ClientSession(
        connector=connector,
        timeout=aiohttp.ClientTimeout(total=timeout_seconds)
    )

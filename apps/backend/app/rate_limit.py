"""
IP-based rate limiting for the trigger endpoint.
"""
import os
from slowapi import Limiter
from slowapi.util import get_remote_address

# Scrape triggers start long-running background work: 10/minute in dev, 5 in production
RATE_LIMIT_SCRAPE = os.getenv("RATE_LIMIT_SCRAPE", "10/minute" if os.getenv("SCRAPER_ENV") == "dev" else "5/minute")
RATE_LIMIT_READ = os.getenv("RATE_LIMIT_READ", "60/minute")

limiter = Limiter(key_func=get_remote_address)

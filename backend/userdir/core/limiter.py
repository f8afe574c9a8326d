"""Shared rate limiter. Routers import it from here so main.py stays the only app module."""
from slowapi import Limiter
from slowapi.util import get_remote_address

# Bulk endpoints opt in with @limiter.limit(settings.IMPORT_RATE_LIMIT)
limiter = Limiter(key_func=get_remote_address)

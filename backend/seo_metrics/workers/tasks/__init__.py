"""
Celery Tasks
"""

from .cache_tasks import purge_expired_cache

__all__ = [
    "purge_expired_cache",
]

"""
Cache Maintenance Tasks
"""

from datetime import datetime
from typing import Dict

from celery.utils.log import get_task_logger

from seo_metrics.workers.celery_app import celery_app
from seo_metrics.utils.database import get_sync_db
from seo_metrics.models import CacheEntry

logger = get_task_logger(__name__)


@celery_app.task(
    name="seo_metrics.workers.tasks.cache_tasks.purge_expired_cache",
)
def purge_expired_cache() -> Dict:
    """
    Delete expired rows from the SQL cache table.
    Reads already ignore expired rows; this only reclaims space.
    Runs every 6 hours.
    """
    db = get_sync_db()

    try:
        now = datetime.utcnow()
        removed = db.query(CacheEntry).filter(
            CacheEntry.expires_at <= now
        ).delete(synchronize_session=False)
        db.commit()

        logger.info(f"Purged {removed} expired cache entries")
        return {
            "success": True,
            "removed": removed,
            "timestamp": now.isoformat(),
        }

    except Exception as e:
        logger.exception(f"Error purging expired cache: {e}")
        db.rollback()
        return {"error": str(e)}
    finally:
        db.close()

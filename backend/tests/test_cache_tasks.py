from datetime import datetime, timedelta

from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from seo_metrics.models import Base, CacheEntry
from seo_metrics.workers.tasks import cache_tasks


def test_purge_expired_cache_removes_only_expired_rows(monkeypatch):
    engine = create_engine(
        "sqlite://", poolclass=StaticPool, connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    now = datetime.utcnow()
    with Session(engine) as db:
        db.add_all([
            CacheEntry(subject="old.com", data_type="site_audit", region="global", page=0,
                       data={}, expires_at=now - timedelta(hours=1)),
            CacheEntry(subject="fresh.com", data_type="site_audit", region="global", page=0,
                       data={}, expires_at=now + timedelta(hours=1)),
        ])
        db.commit()

    monkeypatch.setattr(cache_tasks, "get_sync_db", lambda: Session(engine))

    result = cache_tasks.purge_expired_cache()

    assert result["success"] is True
    assert result["removed"] == 1
    with Session(engine) as db:
        assert [e.subject for e in db.query(CacheEntry).all()] == ["fresh.com"]

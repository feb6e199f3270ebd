import logging

from app.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="app.tasks.presence.deactivate_stale_presence", ignore_result=True)
def deactivate_stale_presence() -> None:
    """Periodic sweep that marks presence records past the liveness window inactive."""
    from app.db import SessionLocal
    from app.services.presence import presence

    db = SessionLocal()
    try:
        count = presence.deactivate_stale(db)
        logger.info("Marked %d stale presence records inactive", count)
    except Exception as e:
        db.rollback()
        logger.exception("Failed to deactivate stale presence: %s", e)
    finally:
        db.close()

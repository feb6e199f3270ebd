import logging

from app.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="app.tasks.cases.reconcile_case_counters", ignore_result=True)
def reconcile_case_counters() -> None:
    """Periodic task recomputing document_count and total_size for active cases.

    Each case is reconciled on its own so one failure doesn't block others.
    """
    from app.db import SessionLocal
    from app.services.ecm_case import cases

    db = SessionLocal()
    try:
        count = 0
        for case_id in cases.active_case_ids(db):
            try:
                cases.reconcile(db, case_id)
                count += 1
            except Exception as e:
                db.rollback()
                logger.warning("Failed to reconcile case %s: %s", case_id, e)
        logger.info("Reconciled counters for %d cases", count)
    except Exception as e:
        logger.exception("Failed to reconcile case counters: %s", e)
    finally:
        db.close()

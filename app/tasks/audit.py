import logging

from sqlalchemy.exc import SQLAlchemyError

from app.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    name="app.tasks.audit.record_audit_event",
    ignore_result=True,
    autoretry_for=(SQLAlchemyError,),
    retry_backoff=True,
    max_retries=5,
)
def record_audit_event(
    self,
    actor_id: str,
    action: str,
    document_id: str | None = None,
    case_id: str | None = None,
    workspace_id: str | None = None,
    detail: str | None = None,
) -> None:
    """Write an audit row queued by ``audit_events.record_deferred``.

    Database errors are retried with backoff; delivery is at-least-once
    so the same event may be recorded twice.
    """
    from app.db import SessionLocal
    from app.services.audit import audit_events

    db = SessionLocal()
    try:
        audit_events.record(
            db,
            actor_id,
            action,
            document_id=document_id,
            case_id=case_id,
            workspace_id=workspace_id,
            detail=detail,
        )
        db.commit()
        logger.info("Recorded deferred %s audit event for %s", action, actor_id)
    except SQLAlchemyError:
        db.rollback()
        logger.warning(
            "Deferred audit %s for %s failed (attempt %d)",
            action,
            actor_id,
            self.request.retries + 1,
        )
        raise
    finally:
        db.close()

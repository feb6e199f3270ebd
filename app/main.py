from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from app.api.audit import router as audit_router
from app.api.ecm_acl import router as ecm_acl_router
from app.api.ecm_cases import router as ecm_cases_router
from app.api.ecm_documents import router as ecm_documents_router
from app.api.presence import router as presence_router
from app.api.subscriptions import router as subscriptions_router
from app.config import settings
from app.errors import register_error_handlers
from app.logging import configure_logging
from app.observability import ObservabilityMiddleware

app = FastAPI(title=f"{settings.brand_name} API", description=settings.brand_tagline)

configure_logging()
app.add_middleware(ObservabilityMiddleware)
register_error_handlers(app)


def _include_api_router(router, dependencies=None):
    app.include_router(router, dependencies=dependencies)
    app.include_router(router, prefix="/api/v1", dependencies=dependencies)


_include_api_router(ecm_documents_router)
_include_api_router(ecm_acl_router)
_include_api_router(ecm_cases_router)
_include_api_router(audit_router)
_include_api_router(presence_router)
_include_api_router(subscriptions_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)

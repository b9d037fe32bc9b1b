from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.capacity.router import router as capacity_router
from app.api.v1.cleanup.router import router as cleanup_router
from app.api.v1.enrollments.router import router as enrollments_router
from app.api.v1.payments.invoice_router import router as invoices_router
from app.api.v1.payments.router import router as payments_router
from app.api.v1.reconciliation.router import router as reconciliation_router
from app.api.v1.students.router import router as student_approvals_router
from app.core.config import settings
from app.core.logging import configure_logging


def create_app() -> FastAPI:
    configure_logging(settings.log_level)
    app = FastAPI(title="Batch Enrollment Backend")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(student_approvals_router)
    app.include_router(enrollments_router)
    app.include_router(invoices_router)
    app.include_router(payments_router)
    app.include_router(capacity_router)
    app.include_router(reconciliation_router)
    app.include_router(cleanup_router)

    return app


app = create_app()

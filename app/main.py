from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.v1.fee_structures.router import router as fee_structures_router
from app.api.v1.mpesa.router import router as mpesa_router
from app.api.v1.payments.router import router as payments_router
from app.api.v1.student_fees.router import router as student_fees_router
from app.core.config import settings
from app.core.logging_config import configure_logging


def create_app() -> FastAPI:
    configure_logging(settings.log_level, json_output=settings.log_json)

    app = FastAPI(title="Fee Reconciliation Backend")

    # CORS: allow the finance frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(mpesa_router)
    app.include_router(payments_router)
    app.include_router(student_fees_router)
    app.include_router(fee_structures_router)

    return app


app = create_app()

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from pdfstore.config import settings
from pdfstore.database import create_db_and_tables
from pdfstore.routes import (
    admin_payment_settings,
    downloads,
    payments,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Run DB creation ONLY in local
    if settings.ENV == "local":
        create_db_and_tables()
    yield

app = FastAPI(title="PDF Store Payments API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://localhost:3000",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(payments.router, prefix="/payments", tags=["Payments"])
app.include_router(downloads.router, prefix="/payments", tags=["Downloads"])
app.include_router(admin_payment_settings.router, prefix="/admin", tags=["Admin Payment Settings"])


@app.get("/")
def root():
    return {
        "payment_endpoints": [
            "/payments/settings", "/payments/create-order",
            "/payments/verify-payment", "/payments/owned/{item_id}",
            "/payments/my-orders",
        ],
        "download_endpoints": [
            "/payments/download?order_id=", "/payments/download-link?order_id=",
        ],
        "admin_endpoints": [
            "/admin/payment-settings",
        ],
    }

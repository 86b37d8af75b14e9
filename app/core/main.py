# app/core/main.py
from __future__ import annotations

import os
import time
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.core.settings import settings
from app.core.database import test_db_connection, init_db
from app.conciliacion.exceptions import ConciliacionError, get_http_status_code

# ===== Modelos simples =====
class HealthResponse(BaseModel):
    status: str
    db_connection: bool
    version: str
    timestamp: datetime

class ErrorResponse(BaseModel):
    error: str
    code: Optional[int] = None
    detail: Optional[str] = None

# ===== Routers =====
from app.conciliacion.routes.conciliacion import router as conciliacion_router
from app.impuestos.router import router as impuestos_router
from app.impuestos.tablas import (
    ISR_RESICO_FLAT_RATE, IVA_FRONTERA_RATE, IVA_GENERAL_RATE, IVA_RETENTION_RATE, RESICO_ANNUAL_LIMIT,
)

# ===== Logging =====
LOG_LEVEL = getattr(settings, "LOG_LEVEL", "INFO")
logging.basicConfig(
    level=getattr(logging, str(LOG_LEVEL).upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ===== App =====
@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Iniciando Sistema de Conciliación RESICO...")

    # DB init
    try:
        init_db()
        logger.info("✅ Base de datos inicializada correctamente")
    except Exception as e:
        logger.error(f"❌ Error inicializando base de datos: {e}")

    yield
    logger.info("🔄 Cerrando Sistema de Conciliación RESICO...")

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Conciliación de movimientos bancarios contra CFDIs y cálculo de ISR/IVA RESICO",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# ===== CORS =====
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-User-Id"],
)

# ===== Middleware de logs =====
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    logger.info(f"📥 {request.method} {request.url}")
    resp = await call_next(request)
    logger.info(f"📤 {resp.status_code} - {time.time() - start:.4f}s")
    return resp

# ===== Manejadores de errores =====
@app.exception_handler(ConciliacionError)
async def conciliacion_exception_handler(request: Request, exc: ConciliacionError):
    status_code = get_http_status_code(exc)
    if status_code >= 500:
        logger.error(f"❌ {exc}")
    else:
        logger.warning(f"⚠️ {exc}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())

@app.exception_handler(HTTPException)
async def custom_http_exception_handler(request: Request, exc: HTTPException):
    logger.error(f"❌ HTTP {exc.status_code} - {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail), code=exc.status_code).model_dump(),
    )

@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"💥 Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error="Error interno del servidor",
            detail=str(exc) if settings.DEBUG else None,
        ).model_dump(),
    )

# ===== Routers =====
app.include_router(conciliacion_router, prefix="/api/v1", tags=["🏦 Conciliación Bancaria"])
app.include_router(impuestos_router,    prefix="/api/v1", tags=["🧾 Impuestos RESICO"])

# ===== Endpoints =====
@app.get("/", include_in_schema=False)
async def root():
    return {
        "message": "Sistema de Conciliación RESICO",
        "version": settings.APP_VERSION,
        "modules": {"conciliacion": "/api/v1/matching", "impuestos": "/api/v1/impuestos"},
        "docs": "/docs",
        "redoc": "/redoc",
    }

@app.get("/health", response_model=HealthResponse)
async def health_check():
    ok = test_db_connection()
    content = HealthResponse(
        status="healthy" if ok else "unhealthy",
        db_connection=ok,
        version=settings.APP_VERSION,
        timestamp=datetime.now(),
    )
    if not ok:
        return JSONResponse(status_code=503, content=content.model_dump(mode="json"))
    return content

@app.get("/info")
async def get_app_info():
    return {
        "app_name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "debug": settings.DEBUG,
        "modules": {
            "conciliacion": {
                "description": "Matching transacción ↔ CFDI y conciliación por periodo",
                "endpoints": ["/api/v1/matching/*", "/api/v1/reconciliation"],
            },
            "impuestos": {
                "description": "ISR e IVA mensual RESICO",
                "endpoints": "/api/v1/impuestos/*",
                "tasas": {
                    "isr_resico_promedio": float(ISR_RESICO_FLAT_RATE),
                    "iva_general": float(IVA_GENERAL_RATE),
                    "iva_frontera": float(IVA_FRONTERA_RATE),
                    "iva_retencion": float(IVA_RETENTION_RATE),
                    "limite_anual_resico": float(RESICO_ANNUAL_LIMIT),
                },
            },
        },
        # No exponemos URL con credenciales para evitar leaks
        "matching": {
            "amount_tolerance": float(settings.MATCH_AMOUNT_TOLERANCE),
            "max_date_diff": settings.MATCH_MAX_DATE_DIFF,
            "min_confidence": float(settings.MATCH_MIN_CONFIDENCE),
        },
        "cors_origins": settings.cors_origins_list,
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.core.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=settings.DEBUG,
        log_level=str(LOG_LEVEL).lower(),
    )

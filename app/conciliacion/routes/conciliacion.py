"""
Router de matching transacción ↔ factura y conciliación por periodo
"""

import logging
from dataclasses import replace
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.conciliacion.exceptions import ConfiguracionInvalidaError
from app.conciliacion.registros import MatchingConfig
from app.conciliacion.schemas import (
    ConciliacionPeriodoResponse, ConciliacionRequest, MatchManualRequest, MatchingAutoRequest,
    SugerenciasResponse,
)
from app.conciliacion.services.conciliacion_service import ConciliacionService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Conciliación"])


def obtener_user_id(x_user_id: str = Header(..., alias="X-User-Id", min_length=1)) -> str:
    """Identidad del usuario; la autenticación vive fuera de este servicio"""
    return x_user_id


def _config_solicitud(request: MatchingAutoRequest) -> Optional[MatchingConfig]:
    cambios = {
        campo: valor
        for campo, valor in (
            ("amount_tolerance", request.amount_tolerance),
            ("max_date_diff", request.max_date_diff),
            ("min_confidence", request.min_confidence),
        )
        if valor is not None
    }
    if not cambios:
        return None
    try:
        return replace(MatchingConfig.desde_settings(), **cambios)
    except ConfiguracionInvalidaError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.message)


# === MATCHING ===

@router.post("/matching/auto")
def matching_automatico(
    request: MatchingAutoRequest,
    user_id: str = Depends(obtener_user_id),
    db: Session = Depends(get_db),
):
    """
    Ejecuta el matching automático sobre las transacciones sin conciliar

    - period: Periodo YYYY-MM
    - statement_id: Estado de cuenta (tiene prioridad sobre period)
    - amount_tolerance / max_date_diff / min_confidence: ajustes opcionales
    """
    service = ConciliacionService(db)
    return service.ejecutar_matching_automatico(
        user_id,
        period=request.period,
        statement_id=request.statement_id,
        config=_config_solicitud(request),
    )


@router.get("/matching/sugerencias/{transaction_id}", response_model=SugerenciasResponse)
def sugerencias_transaccion(
    transaction_id: str,
    limite: int = Query(default=5, ge=1, le=20),
    user_id: str = Depends(obtener_user_id),
    db: Session = Depends(get_db),
):
    sugerencias = ConciliacionService(db).obtener_sugerencias_transaccion(user_id, transaction_id, limite)
    return {
        "transaction_id": transaction_id,
        "sugerencias": [s.to_dict() for s in sugerencias],
    }


@router.post("/matching/manual")
def matching_manual(
    request: MatchManualRequest,
    user_id: str = Depends(obtener_user_id),
    db: Session = Depends(get_db),
):
    return ConciliacionService(db).conciliar_manual(user_id, request.transaction_id, request.invoice_id)


@router.delete("/matching/{transaction_id}")
def deshacer_match(
    transaction_id: str,
    user_id: str = Depends(obtener_user_id),
    db: Session = Depends(get_db),
):
    return ConciliacionService(db).deshacer_match(user_id, transaction_id)


# === CONCILIACIÓN POR PERIODO ===

@router.post("/reconciliation/calculate")
def calcular_conciliacion(
    request: ConciliacionRequest,
    user_id: str = Depends(obtener_user_id),
    db: Session = Depends(get_db),
):
    resumen = ConciliacionService(db).calcular_conciliacion_periodo(user_id, request.period)
    return {"success": True, "reconciliation": resumen.to_dict()}


@router.get("/reconciliation", response_model=List[ConciliacionPeriodoResponse])
def listar_conciliaciones(
    period: Optional[str] = Query(default=None),
    user_id: str = Depends(obtener_user_id),
    db: Session = Depends(get_db),
):
    return ConciliacionService(db).obtener_conciliaciones(user_id, period)

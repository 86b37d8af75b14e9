"""
Router de cálculo de impuestos RESICO
"""

import logging
from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.conciliacion.routes.conciliacion import obtener_user_id
from app.impuestos.calculadora import EntradaImpuestos, calcular_impuestos, verificar_limite_resico
from app.impuestos.services.impuestos_service import ImpuestosService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/impuestos", tags=["Impuestos"])


class CalculoImpuestosRequest(BaseModel):
    """Totales agregados del periodo"""
    ingresos_facturados: Decimal = Decimal("0")
    ingresos_cobrados: Decimal = Decimal("0")
    gastos_facturados: Decimal = Decimal("0")
    gastos_pagados: Decimal = Decimal("0")
    iva_trasladado: Decimal = Decimal("0")
    iva_acreditable: Decimal = Decimal("0")
    iva_retenido: Decimal = Decimal("0")
    isr_retenido: Decimal = Decimal("0")


@router.post("/calcular")
def calcular(request: CalculoImpuestosRequest):
    """Cálculo puro: no lee ni escribe en base de datos"""
    resultado = calcular_impuestos(EntradaImpuestos(**request.model_dump()))
    return resultado.to_dict()


@router.post("/periodo/{period}")
def calcular_periodo(
    period: str,
    user_id: str = Depends(obtener_user_id),
    db: Session = Depends(get_db),
):
    return ImpuestosService(db).calcular_periodo(user_id, period)


@router.get("/limite-resico")
def limite_resico(ingreso_anual: Decimal = Query(..., ge=0)):
    resultado = verificar_limite_resico(ingreso_anual)
    return {
        "exceeded": resultado["exceeded"],
        "remaining": float(resultado["remaining"]),
        "percentage": float(resultado["percentage"]),
    }

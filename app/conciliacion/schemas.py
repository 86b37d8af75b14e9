"""
Schemas Pydantic para el módulo de conciliación bancaria
"""

from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field, model_validator

from .utils import PATRON_PERIODO

PERIODO_REGEX = PATRON_PERIODO.pattern


class MatchingAutoRequest(BaseModel):
    """Alcance de la corrida: periodo o estado de cuenta"""
    period: Optional[str] = Field(default=None, pattern=PERIODO_REGEX)
    statement_id: Optional[str] = None
    amount_tolerance: Optional[Decimal] = None
    max_date_diff: Optional[int] = None
    min_confidence: Optional[Decimal] = None

    @model_validator(mode="after")
    def _requiere_alcance(self):
        if not self.period and not self.statement_id:
            raise ValueError("Se requiere period o statement_id")
        return self


class MatchManualRequest(BaseModel):
    transaction_id: str = Field(min_length=1)
    invoice_id: str = Field(min_length=1)


class ConciliacionRequest(BaseModel):
    period: str = Field(pattern=PERIODO_REGEX)


class MatchFactorsResponse(BaseModel):
    amountMatch: float
    dateProximity: float
    rfcMatch: float
    descriptionMatch: float


class MatchResponse(BaseModel):
    transactionId: str
    invoiceId: str
    confidence: float
    factors: MatchFactorsResponse


class SugerenciasResponse(BaseModel):
    transaction_id: str
    sugerencias: List[MatchResponse]


class ConciliacionPeriodoResponse(BaseModel):
    """Fila guardada de reconciliations"""
    id: str
    user_id: str
    period: str
    status: str
    total_ingresos_banco: Decimal
    total_ingresos_facturas: Decimal
    diferencia_ingresos: Decimal
    total_egresos_banco: Decimal
    total_egresos_facturas: Decimal
    diferencia_egresos: Decimal
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

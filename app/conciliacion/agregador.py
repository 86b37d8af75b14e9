"""
Agregador de conciliación por periodo

Suma banco contra facturas por dirección, cuenta transacciones y
facturas sin empatar y clasifica el periodo como pendiente, completo o
con diferencias.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Sequence

from app.conciliacion.registros import (
    BankTransaction, Invoice, TipoTransaccion, TipoFactura,
)
from app.conciliacion.utils import validar_periodo

# Absorbe la deriva de centavos por redondeo; no es un umbral de materialidad
TOLERANCIA_DIFERENCIA = Decimal("1.00")


class EstadoConciliacion(str, Enum):
    PENDIENTE = "pendiente"
    COMPLETO = "completo"
    CON_DIFERENCIAS = "con_diferencias"


@dataclass(frozen=True)
class ResumenConciliacion:
    """Totales y estado de la conciliación de un periodo."""

    period: str
    status: EstadoConciliacion
    total_ingresos_banco: Decimal
    total_egresos_banco: Decimal
    total_ingresos_facturas: Decimal
    total_egresos_facturas: Decimal
    total_transactions: int
    matched_transactions: int
    total_invoices: int
    unmatched_invoices: int

    @property
    def diferencia_ingresos(self) -> Decimal:
        return self.total_ingresos_banco - self.total_ingresos_facturas

    @property
    def diferencia_egresos(self) -> Decimal:
        return self.total_egresos_banco - self.total_egresos_facturas

    @property
    def unmatched_transactions(self) -> int:
        return self.total_transactions - self.matched_transactions

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": self.period,
            "status": self.status.value,
            "details": {
                "totalTransactions": self.total_transactions,
                "matchedTransactions": self.matched_transactions,
                "unmatchedTransactions": self.unmatched_transactions,
                "totalInvoices": self.total_invoices,
                "unmatchedInvoices": self.unmatched_invoices,
            },
            "summary": {
                "ingresos": {
                    "banco": float(self.total_ingresos_banco),
                    "facturas": float(self.total_ingresos_facturas),
                    "diferencia": float(self.diferencia_ingresos),
                },
                "egresos": {
                    "banco": float(self.total_egresos_banco),
                    "facturas": float(self.total_egresos_facturas),
                    "diferencia": float(self.diferencia_egresos),
                },
            },
        }


def clasificar_estado(
    hay_transacciones: bool,
    hay_facturas: bool,
    diferencia_ingresos: Decimal,
    diferencia_egresos: Decimal,
    transacciones_sin_match: int,
    facturas_sin_match: int,
) -> EstadoConciliacion:
    """
    Clasifica el periodo. El orden de las reglas importa:
    sin datos → pendiente; todo cuadra → completo; cualquier otro caso → con_diferencias
    """
    if not hay_transacciones and not hay_facturas:
        return EstadoConciliacion.PENDIENTE

    cuadra = (
        hay_transacciones
        and hay_facturas
        and abs(diferencia_ingresos) <= TOLERANCIA_DIFERENCIA
        and abs(diferencia_egresos) <= TOLERANCIA_DIFERENCIA
        and transacciones_sin_match == 0
        and facturas_sin_match == 0
    )
    if cuadra:
        return EstadoConciliacion.COMPLETO
    return EstadoConciliacion.CON_DIFERENCIAS


def calcular_conciliacion(
    period: str,
    transactions: Sequence[BankTransaction],
    invoices: Sequence[Invoice],
) -> ResumenConciliacion:
    """
    Calcula el resumen de conciliación de un periodo

    Args:
        period: Periodo 'YYYY-MM'
        transactions: Todas las transacciones bancarias del periodo
        invoices: Todas las facturas del periodo (las canceladas se ignoran)

    Returns:
        ResumenConciliacion con totales, conteos y estado
    """
    validar_periodo(period)
    vigentes = [inv for inv in invoices if inv.vigente]

    total_ingresos_banco = sum(
        (tx.amount for tx in transactions if tx.direction is TipoTransaccion.INGRESO), Decimal("0")
    )
    total_egresos_banco = sum(
        (tx.amount for tx in transactions if tx.direction is TipoTransaccion.EGRESO), Decimal("0")
    )
    total_ingresos_facturas = sum(
        (inv.total for inv in vigentes if inv.direction is TipoFactura.EMITIDA), Decimal("0")
    )
    total_egresos_facturas = sum(
        (inv.total for inv in vigentes if inv.direction is TipoFactura.RECIBIDA), Decimal("0")
    )

    facturas_empatadas = {tx.matched_invoice_id for tx in transactions if tx.matched_invoice_id}
    matched = sum(1 for tx in transactions if tx.matched_invoice_id)
    unmatched_invoices = sum(1 for inv in vigentes if inv.id not in facturas_empatadas)

    status = clasificar_estado(
        hay_transacciones=len(transactions) > 0,
        hay_facturas=len(vigentes) > 0,
        diferencia_ingresos=total_ingresos_banco - total_ingresos_facturas,
        diferencia_egresos=total_egresos_banco - total_egresos_facturas,
        transacciones_sin_match=len(transactions) - matched,
        facturas_sin_match=unmatched_invoices,
    )

    return ResumenConciliacion(
        period=period,
        status=status,
        total_ingresos_banco=total_ingresos_banco,
        total_egresos_banco=total_egresos_banco,
        total_ingresos_facturas=total_ingresos_facturas,
        total_egresos_facturas=total_egresos_facturas,
        total_transactions=len(transactions),
        matched_transactions=matched,
        total_invoices=len(vigentes),
        unmatched_invoices=unmatched_invoices,
    )

"""
Calculadora de impuestos RESICO (ISR e IVA)

Funciones puras: reciben totales del periodo y regresan resultados
redondeados a centavos con redondeo comercial (half-up). No lanzan
excepciones por montos fuera de dominio; un ingreso negativo se trata
como cero.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional, Sequence, Set, Union

from app.conciliacion.registros import BankTransaction, Invoice, TipoFactura
from app.conciliacion.utils import a_decimal, redondear_monto, validar_periodo
from app.impuestos.tablas import (
    ISR_RESICO_TABLE, RESICO_ANNUAL_LIMIT, DIA_LIMITE_PAGO, TaxBracket,
)

logger = logging.getLogger(__name__)

Monto = Union[Decimal, int, float, str]


# === RESULTADOS ===

@dataclass(frozen=True)
class ResultadoISR:
    base_gravable: Decimal
    tasa: Decimal
    isr_causado: Decimal
    isr_retenido: Decimal
    isr_por_pagar: Decimal


@dataclass(frozen=True)
class ResultadoIVA:
    trasladado: Decimal
    acreditable: Decimal
    retenido: Decimal
    por_pagar: Decimal
    a_favor: Decimal


@dataclass(frozen=True)
class EntradaImpuestos:
    """Totales agregados de un periodo."""

    ingresos_facturados: Decimal = Decimal("0")
    ingresos_cobrados: Decimal = Decimal("0")
    gastos_facturados: Decimal = Decimal("0")
    gastos_pagados: Decimal = Decimal("0")
    iva_trasladado: Decimal = Decimal("0")
    iva_acreditable: Decimal = Decimal("0")
    iva_retenido: Decimal = Decimal("0")
    isr_retenido: Decimal = Decimal("0")


@dataclass(frozen=True)
class TaxCalculationResult:
    isr: ResultadoISR
    iva: ResultadoIVA
    total_por_pagar: Decimal
    total_a_favor: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isr": {
                "baseGravable": float(self.isr.base_gravable),
                "tasaAplicada": float(self.isr.tasa),
                "isrCausado": float(self.isr.isr_causado),
                "isrRetenido": float(self.isr.isr_retenido),
                "isrPorPagar": float(self.isr.isr_por_pagar),
            },
            "iva": {
                "trasladado": float(self.iva.trasladado),
                "acreditable": float(self.iva.acreditable),
                "retenido": float(self.iva.retenido),
                "porPagar": float(self.iva.por_pagar),
                "aFavor": float(self.iva.a_favor),
            },
            "totalPorPagar": float(self.total_por_pagar),
            "totalAFavor": float(self.total_a_favor),
        }


def _monto(valor: Optional[Monto], campo: str) -> Decimal:
    if valor is None:
        return Decimal("0")
    return a_decimal(valor, campo, permitir_negativo=True)


# === ISR ===

def obtener_tasa_isr(ingreso_mensual: Monto, tabla: Sequence[TaxBracket] = ISR_RESICO_TABLE) -> Decimal:
    """
    Tasa ISR RESICO para un ingreso mensual

    El ingreso se redondea a centavos antes de buscar el rango para que un
    valor como 25000.005 no caiga en el hueco entre 25000 y 25000.01.
    Si excede todos los rangos se aplica la tasa del último.
    """
    ingreso = redondear_monto(max(_monto(ingreso_mensual, "ingreso_mensual"), Decimal("0")))
    for rango in tabla:
        if rango.contiene(ingreso):
            return rango.rate
    return tabla[-1].rate


def calcular_isr(ingreso_mensual: Monto, isr_retenido: Monto = 0) -> ResultadoISR:
    """
    Calcula ISR mensual RESICO

    Args:
        ingreso_mensual: Base del periodo
        isr_retenido: ISR ya retenido por clientes

    Returns:
        ResultadoISR; isr_por_pagar nunca es negativo
    """
    base = max(_monto(ingreso_mensual, "ingreso_mensual"), Decimal("0"))
    retenido = _monto(isr_retenido, "isr_retenido")
    tasa = obtener_tasa_isr(base)

    causado = base * tasa
    por_pagar = max(Decimal("0"), causado - retenido)

    return ResultadoISR(
        base_gravable=redondear_monto(base),
        tasa=tasa,
        isr_causado=redondear_monto(causado),
        isr_retenido=redondear_monto(retenido),
        isr_por_pagar=redondear_monto(por_pagar),
    )


# === IVA ===

def calcular_iva(trasladado: Monto, acreditable: Monto, retenido: Monto = 0) -> ResultadoIVA:
    """
    Calcula IVA mensual: trasladado - acreditable - retenido

    El neto con signo se separa en por_pagar / a_favor; a lo más uno de
    los dos es distinto de cero.
    """
    t = _monto(trasladado, "iva_trasladado")
    a = _monto(acreditable, "iva_acreditable")
    r = _monto(retenido, "iva_retenido")
    diferencia = t - a - r

    return ResultadoIVA(
        trasladado=redondear_monto(t),
        acreditable=redondear_monto(a),
        retenido=redondear_monto(r),
        por_pagar=redondear_monto(max(Decimal("0"), diferencia)),
        a_favor=redondear_monto(max(Decimal("0"), -diferencia)),
    )


def calcular_impuestos(entrada: EntradaImpuestos) -> TaxCalculationResult:
    """
    Calcula ISR e IVA del periodo

    La base del ISR son los ingresos facturados del periodo (subtotal de
    emitidas vigentes).
    """
    isr = calcular_isr(entrada.ingresos_facturados, entrada.isr_retenido)
    iva = calcular_iva(entrada.iva_trasladado, entrada.iva_acreditable, entrada.iva_retenido)

    return TaxCalculationResult(
        isr=isr,
        iva=iva,
        total_por_pagar=isr.isr_por_pagar + iva.por_pagar,
        total_a_favor=iva.a_favor,
    )


# === AGREGACIÓN ===

def resumen_fiscal_periodo(
    period: str,
    invoices: Sequence[Invoice],
    transactions: Sequence[BankTransaction] = (),
) -> EntradaImpuestos:
    """
    Construye los totales de un periodo a partir de facturas y transacciones

    Las facturas canceladas o de otro periodo se ignoran. Una factura cuenta
    como cobrada/pagada si alguna transacción está empatada con ella.
    """
    validar_periodo(period)
    vigentes = [inv for inv in invoices if inv.vigente and inv.period == period]
    emitidas = [inv for inv in vigentes if inv.direction is TipoFactura.EMITIDA]
    recibidas = [inv for inv in vigentes if inv.direction is TipoFactura.RECIBIDA]
    empatadas: Set[str] = {tx.matched_invoice_id for tx in transactions if tx.matched_invoice_id}

    def suma(valores) -> Decimal:
        return sum(valores, Decimal("0"))

    entrada = EntradaImpuestos(
        ingresos_facturados=suma(i.subtotal for i in emitidas),
        ingresos_cobrados=suma(i.subtotal for i in emitidas if i.id in empatadas),
        gastos_facturados=suma(i.subtotal for i in recibidas),
        gastos_pagados=suma(i.subtotal for i in recibidas if i.id in empatadas),
        iva_trasladado=suma(i.iva for i in emitidas),
        iva_acreditable=suma(i.iva for i in recibidas),
        iva_retenido=suma(i.retained_iva for i in emitidas),
        isr_retenido=suma(i.retained_isr for i in emitidas),
    )
    logger.debug(f"Resumen fiscal {period}: {entrada}")
    return entrada


# === UTILIDADES ===

def verificar_limite_resico(ingreso_anual: Monto) -> Dict[str, Any]:
    """
    Verifica si el contribuyente excede el límite anual de RESICO
    """
    ingreso = _monto(ingreso_anual, "ingreso_anual")
    return {
        "exceeded": ingreso > RESICO_ANNUAL_LIMIT,
        "remaining": redondear_monto(max(Decimal("0"), RESICO_ANNUAL_LIMIT - ingreso)),
        "percentage": redondear_monto(ingreso / RESICO_ANNUAL_LIMIT * 100),
    }


def fecha_limite_pago(period: str) -> date:
    """
    Fecha límite de la declaración mensual: día 17 del mes siguiente
    """
    validar_periodo(period)
    anio, mes = (int(p) for p in period.split('-'))
    if mes == 12:
        return date(anio + 1, 1, DIA_LIMITE_PAGO)
    return date(anio, mes + 1, DIA_LIMITE_PAGO)

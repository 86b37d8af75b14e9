"""
Scorer de conciliación transacción ↔ factura

Dado un movimiento bancario y un CFDI produce un score ponderado de
confianza o descalifica el par (regresa None). Cuatro factores:

    monto          40%   descalifica fuera de la tolerancia y del 5%
    fecha          30%   nunca descalifica
    RFC            20%   contraparte exacta, distinta o desconocida
    descripción    10%   palabras del concepto / nombre de la contraparte

Toda la aritmética es Decimal: el mismo par con la misma configuración
produce exactamente el mismo score en cualquier corrida.
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from app.conciliacion.registros import (
    BankTransaction, Invoice, MatchFactors, MatchResult, MatchingConfig,
    TipoTransaccion, TipoFactura, DEFAULT_CONFIG,
)

logger = logging.getLogger(__name__)

# === PESOS ===

PESO_MONTO = Decimal("0.40")
PESO_FECHA = Decimal("0.30")
PESO_RFC = Decimal("0.20")
PESO_DESCRIPCION = Decimal("0.10")

# Una transacción de ingreso sólo se empata con facturas emitidas y un egreso con recibidas
TIPO_FACTURA_ESPERADO = {
    TipoTransaccion.INGRESO: TipoFactura.EMITIDA,
    TipoTransaccion.EGRESO: TipoFactura.RECIBIDA,
}

# (diferencia relativa máxima, score); la primera fila con la tolerancia
# configurada se antepone en score_monto
TRAMOS_MONTO = (
    (Decimal("0.01"), Decimal("0.85")),
    (Decimal("0.03"), Decimal("0.60")),
    (Decimal("0.05"), Decimal("0.40")),
)

SCORE_RFC_EXACTO = Decimal("1.00")
SCORE_RFC_DISTINTO = Decimal("0.10")
SCORE_RFC_DESCONOCIDO = Decimal("0.50")

SCORE_DESCRIPCION_BASE = Decimal("0.30")
SCORE_NOMBRE_CONTRAPARTE = Decimal("0.80")

CENTESIMOS = Decimal("0.01")


def score_monto(monto_tx: Decimal, total_factura: Decimal, config: MatchingConfig) -> Optional[Decimal]:
    """
    Score por diferencia relativa de monto

    Returns:
        Score del tramo, o None si el total es cero o la diferencia supera
        tanto la tolerancia configurada como el 5%
    """
    if total_factura == 0:
        return None

    diferencia = abs(monto_tx - total_factura) / total_factura

    if diferencia <= config.amount_tolerance:
        return Decimal("1.00")
    for limite, score in TRAMOS_MONTO:
        if diferencia <= limite:
            return score
    return None


def score_fecha(dias: int, config: MatchingConfig) -> Decimal:
    """
    Score por cercanía de fechas en días naturales (valor absoluto)
    """
    if dias <= 1:
        return Decimal("1.00")
    if dias <= 3:
        return Decimal("0.85")
    if dias <= 5:
        return Decimal("0.70")
    if dias <= config.max_date_diff:
        return Decimal("0.50")
    if dias <= 15:
        return Decimal("0.30")
    if dias <= 30:
        return Decimal("0.15")
    return Decimal("0.05")


def rfc_contraparte(transaction: BankTransaction, invoice: Invoice) -> str:
    """RFC de la factura que debería coincidir con la contraparte del movimiento"""
    # Ingreso: nos pagó el receptor. Egreso: le pagamos al emisor.
    if transaction.direction is TipoTransaccion.INGRESO:
        return invoice.rfc_receptor
    return invoice.rfc_emisor


def nombre_contraparte(transaction: BankTransaction, invoice: Invoice) -> str:
    if transaction.direction is TipoTransaccion.INGRESO:
        return invoice.nombre_receptor or ""
    return invoice.nombre_emisor or ""


def score_rfc(transaction: BankTransaction, invoice: Invoice) -> Decimal:
    """
    Score por RFC de la contraparte

    Un RFC distinto penaliza pero no descalifica; sin RFC en el movimiento
    el factor es neutral.
    """
    if not transaction.counterparty_rfc:
        return SCORE_RFC_DESCONOCIDO
    if transaction.counterparty_rfc.upper() == rfc_contraparte(transaction, invoice).upper():
        return SCORE_RFC_EXACTO
    return SCORE_RFC_DISTINTO


def score_descripcion(transaction: BankTransaction, invoice: Invoice) -> Decimal:
    """
    Score por coincidencia de texto entre la descripción bancaria y el CFDI

    - Palabras del concepto (> 3 letras) encontradas en la descripción:
      0.5 + proporción × 0.5, tope 1.0
    - Alguna parte del nombre de la contraparte (> 2 letras) en la
      descripción: al menos 0.80
    Las dos señales no se suman, se toma la mayor.
    """
    descripcion = transaction.description.lower()
    concepto = (invoice.concepto or "").lower()
    nombre = nombre_contraparte(transaction, invoice).lower()

    score = SCORE_DESCRIPCION_BASE

    if len(concepto) > 5:
        palabras = [p for p in concepto.split(" ") if len(p) > 3]
        encontradas = [p for p in palabras if p in descripcion]
        if encontradas:
            proporcion = Decimal(len(encontradas)) / Decimal(len(palabras))
            score = min(Decimal("0.5") + proporcion * Decimal("0.5"), Decimal("1.0"))

    if len(nombre) > 3:
        partes = [p for p in nombre.split(" ") if len(p) > 2]
        if any(p in descripcion for p in partes):
            score = max(score, SCORE_NOMBRE_CONTRAPARTE)

    return score


def calcular_match(
    transaction: BankTransaction,
    invoice: Invoice,
    config: MatchingConfig = DEFAULT_CONFIG,
) -> Optional[MatchResult]:
    """
    Calcula el score de un par transacción/factura

    Args:
        transaction: Movimiento bancario
        invoice: CFDI candidato
        config: Tolerancias y umbral de confianza

    Returns:
        MatchResult con la confianza redondeada a 2 decimales y los cuatro
        factores, o None si el par queda descalificado
    """
    # Filtros duros: dirección y estatus
    if invoice.direction is not TIPO_FACTURA_ESPERADO[transaction.direction]:
        return None
    if not invoice.vigente:
        return None

    monto = score_monto(transaction.amount, invoice.total, config)
    if monto is None:
        return None

    dias = abs((transaction.date - invoice.fecha).days)
    factores = MatchFactors(
        amount_match=monto,
        date_proximity=score_fecha(dias, config),
        rfc_match=score_rfc(transaction, invoice),
        description_match=score_descripcion(transaction, invoice),
    )

    confianza = (
        factores.amount_match * PESO_MONTO
        + factores.date_proximity * PESO_FECHA
        + factores.rfc_match * PESO_RFC
        + factores.description_match * PESO_DESCRIPCION
    )

    if confianza < config.min_confidence:
        logger.debug(
            f"Par {transaction.id}/{invoice.id} bajo umbral: {confianza:.4f} < {config.min_confidence}"
        )
        return None

    return MatchResult(
        transaction_id=transaction.id,
        invoice_id=invoice.id,
        confidence=confianza.quantize(CENTESIMOS, rounding=ROUND_HALF_UP),
        match_factors=factores,
    )

"""
Selector de conciliación - Asignación voraz 1:1
Genera todos los pares viables, los ordena por confianza y confirma
greedy: una transacción se empata con a lo más una factura y viceversa.

No es una asignación óptima (tipo húngaro). Es deliberadamente simple y
explicable: el par con mayor confianza siempre gana.
"""

import logging
from typing import Dict, List, Sequence, Set

from app.conciliacion.registros import (
    BankTransaction, Invoice, MatchResult, MatchingConfig, DEFAULT_CONFIG,
)
from app.conciliacion.scoring import calcular_match
from app.conciliacion.utils import formatear_porcentaje

logger = logging.getLogger(__name__)

LIMITE_SUGERENCIAS = 5


def generar_candidatos(
    transactions: Sequence[BankTransaction],
    invoices: Sequence[Invoice],
    config: MatchingConfig = DEFAULT_CONFIG,
) -> List[MatchResult]:
    """
    Evalúa todos los pares (transacción × factura) y regresa los no descalificados

    El orden es transacciones por fuera, facturas por dentro; de él depende
    el desempate en encontrar_mejores_matches.
    """
    candidatos: List[MatchResult] = []
    for tx in transactions:
        # Las ya conciliadas no se reconsideran
        if tx.matched_invoice_id:
            continue
        for inv in invoices:
            match = calcular_match(tx, inv, config)
            if match:
                candidatos.append(match)
    return candidatos


def encontrar_mejores_matches(
    transactions: Sequence[BankTransaction],
    invoices: Sequence[Invoice],
    config: MatchingConfig = DEFAULT_CONFIG,
) -> List[MatchResult]:
    """
    Asignación voraz global de transacciones a facturas

    Args:
        transactions: Movimientos del alcance (periodo/estado de cuenta)
        invoices: Facturas candidatas del mismo alcance
        config: Tolerancias y umbral

    Returns:
        Matches confirmados en orden descendente de confianza
    """
    candidatos = generar_candidatos(transactions, invoices, config)

    # sorted() es estable: empates conservan el orden de generación
    candidatos = sorted(candidatos, key=lambda m: m.confidence, reverse=True)

    resultados: List[MatchResult] = []
    transacciones_usadas: Set[str] = set()
    facturas_usadas: Set[str] = set()

    for match in candidatos:
        if match.transaction_id in transacciones_usadas:
            continue
        if match.invoice_id in facturas_usadas:
            continue
        resultados.append(match)
        transacciones_usadas.add(match.transaction_id)
        facturas_usadas.add(match.invoice_id)

    logger.info(
        f"🔍 Matching: {len(candidatos)} candidatos, {len(resultados)} confirmados "
        f"({len(transactions)} transacciones × {len(invoices)} facturas)"
    )
    return resultados


def obtener_sugerencias(
    transaction: BankTransaction,
    invoices: Sequence[Invoice],
    config: MatchingConfig = DEFAULT_CONFIG,
    limite: int = LIMITE_SUGERENCIAS,
) -> List[MatchResult]:
    """
    Mejores candidatos para revisión manual de una transacción

    No excluye facturas ya usadas ni confirma nada; sólo ordena.
    """
    sugerencias = [
        match for match in (calcular_match(transaction, inv, config) for inv in invoices)
        if match
    ]
    sugerencias.sort(key=lambda m: m.confidence, reverse=True)
    return sugerencias[:limite]


def generar_reporte(
    transactions: Sequence[BankTransaction],
    resultados: Sequence[MatchResult],
) -> Dict:
    """
    Genera reporte de una corrida de matching
    """
    pendientes_antes = [tx for tx in transactions if not tx.matched_invoice_id]
    total = len(pendientes_antes)
    conciliados = len(resultados)

    confianza_promedio = None
    if resultados:
        confianza_promedio = float(sum(r.confidence for r in resultados) / len(resultados))

    porcentaje = (conciliados / total) if total > 0 else 0
    return {
        'resumen': {
            'total_transacciones': len(transactions),
            'transacciones_sin_match': total,
            'conciliados_automaticos': conciliados,
            'pendientes_revision': total - conciliados,
            'porcentaje_automatizado': formatear_porcentaje(porcentaje),
            'confianza_promedio': confianza_promedio,
        },
        'detalles': [r.to_dict() for r in resultados],
    }

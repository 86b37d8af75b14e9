"""
Servicio de cálculo fiscal por periodo
"""

import logging
from typing import Any, Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.conciliacion.exceptions import handle_database_error
from app.conciliacion.registros import BankTransaction, Invoice
from app.conciliacion.services.conciliacion_service import facturas_periodos, transacciones_periodo
from app.conciliacion.utils import validar_periodo
from app.impuestos.calculadora import calcular_impuestos, fecha_limite_pago, resumen_fiscal_periodo
from app.models.fiscal_models import CalculoImpuesto

logger = logging.getLogger(__name__)


class ImpuestosService:

    def __init__(self, db: Session):
        self.db = db

    def calcular_periodo(self, user_id: str, period: str) -> Dict[str, Any]:
        """
        Calcula ISR e IVA del periodo y guarda el resultado

        Un recálculo sobreescribe la fila existente pero conserva su status
        (p. ej. 'pagado').
        """
        period = validar_periodo(period)
        facturas = [Invoice.desde_orm(f) for f in facturas_periodos(self.db, user_id, [period])]
        transacciones = [BankTransaction.desde_orm(t) for t in transacciones_periodo(self.db, user_id, period)]

        entrada = resumen_fiscal_periodo(period, facturas, transacciones)
        resultado = calcular_impuestos(entrada)
        limite = fecha_limite_pago(period)

        fila = self.db.query(CalculoImpuesto).filter(
            CalculoImpuesto.user_id == user_id,
            CalculoImpuesto.period == period,
        ).first()
        if not fila:
            fila = CalculoImpuesto(user_id=user_id, period=period, status="pendiente")
            self.db.add(fila)

        fila.base_isr = resultado.isr.base_gravable
        fila.tasa_isr = resultado.isr.tasa
        fila.isr_calculado = resultado.isr.isr_causado
        fila.isr_retenido = resultado.isr.isr_retenido
        fila.isr_a_pagar = resultado.isr.isr_por_pagar
        fila.iva_trasladado = resultado.iva.trasladado
        fila.iva_acreditable = resultado.iva.acreditable
        fila.iva_retenido = resultado.iva.retenido
        fila.iva_a_pagar = resultado.iva.por_pagar
        fila.iva_a_favor = resultado.iva.a_favor
        fila.fecha_limite_pago = limite

        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Error de base de datos en cálculo de impuestos: {e}")
            raise handle_database_error(e, "cálculo de impuestos")

        logger.info(
            f"🧾 Impuestos {period} para {user_id}: ISR {resultado.isr.isr_por_pagar}, "
            f"IVA {resultado.iva.por_pagar} (límite {limite.isoformat()})"
        )
        return {
            "period": period,
            "fechaLimitePago": limite.isoformat(),
            "status": fila.status,
            "ingresos": {
                "facturados": float(entrada.ingresos_facturados),
                "cobrados": float(entrada.ingresos_cobrados),
            },
            "gastos": {
                "facturados": float(entrada.gastos_facturados),
                "pagados": float(entrada.gastos_pagados),
            },
            **resultado.to_dict(),
        }

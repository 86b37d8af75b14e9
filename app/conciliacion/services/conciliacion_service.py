"""
Servicio de conciliación: carga filas de BD, corre el núcleo puro y
persiste los resultados
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.conciliacion.agregador import ResumenConciliacion, calcular_conciliacion
from app.conciliacion.conciliador import (
    LIMITE_SUGERENCIAS, encontrar_mejores_matches, generar_reporte, obtener_sugerencias,
)
from app.conciliacion.exceptions import (
    FacturaNoEncontradaError, MatchYaAsignadoError, TransaccionNoEncontradaError,
    ValidacionDatosError, handle_database_error,
)
from app.conciliacion.models import (
    ConciliacionPeriodo, EstadoCuenta, IntentoConciliacion, TransaccionBancaria,
)
from app.conciliacion.registros import (
    BankTransaction, EstatusFactura, Invoice, MatchingConfig, MatchResult, MetodoMatch,
)
from app.conciliacion.scoring import calcular_match
from app.conciliacion.services.bloqueos import RegistroBloqueos, registro_bloqueos
from app.conciliacion.utils import formatear_monto, validar_periodo
from app.models.fiscal_models import Factura

logger = logging.getLogger(__name__)


# === CONSULTAS COMPARTIDAS ===

def transacciones_periodo(db: Session, user_id: str, period: str) -> List[TransaccionBancaria]:
    """Transacciones de los estados de cuenta del usuario en el periodo"""
    return (
        db.query(TransaccionBancaria)
        .join(EstadoCuenta, TransaccionBancaria.statement_id == EstadoCuenta.id)
        .filter(EstadoCuenta.user_id == user_id, EstadoCuenta.period == period)
        .order_by(TransaccionBancaria.date.asc(), TransaccionBancaria.id.asc())
        .all()
    )


def facturas_periodos(
    db: Session,
    user_id: str,
    periods: Iterable[str],
    solo_vigentes: bool = True,
) -> List[Factura]:
    periods = list(periods)
    if not periods:
        return []
    query = db.query(Factura).filter(Factura.user_id == user_id, Factura.period.in_(periods))
    if solo_vigentes:
        query = query.filter(Factura.status == EstatusFactura.VIGENTE.value)
    return query.order_by(Factura.fecha.asc(), Factura.id.asc()).all()


class ConciliacionService:
    """Operaciones de conciliación persistidas para un usuario"""

    def __init__(self, db: Session, bloqueos: RegistroBloqueos = registro_bloqueos):
        self.db = db
        self.bloqueos = bloqueos

    # === MATCHING AUTOMÁTICO ===

    def ejecutar_matching_automatico(
        self,
        user_id: str,
        period: Optional[str] = None,
        statement_id: Optional[str] = None,
        config: Optional[MatchingConfig] = None,
    ) -> Dict[str, Any]:
        """
        Corre el matching voraz sobre las transacciones sin conciliar del alcance

        Args:
            user_id: Dueño de los estados de cuenta y facturas
            period: Periodo 'YYYY-MM' (alcance por periodo)
            statement_id: Estado de cuenta (alcance por archivo, tiene prioridad)
            config: Tolerancias; por defecto las de settings

        Returns:
            Reporte de la corrida con los matches aplicados

        Raises:
            ConciliacionEnCursoError: si ya hay una corrida para el mismo periodo
        """
        if not period and not statement_id:
            raise ValidacionDatosError("period", None, "se requiere period o statement_id")
        if period:
            period = validar_periodo(period)
        config = config or MatchingConfig.desde_settings()
        alcance = f"statement:{statement_id}" if statement_id else f"period:{period}"
        periodos_bloqueo = self._periodos_alcance(user_id, period, statement_id)

        with self.bloqueos.bloquear(user_id, *periodos_bloqueo):
            logger.info(f"🚀 Iniciando matching automático para {user_id} ({alcance})")

            filas = self._transacciones_sin_conciliar(user_id, period, statement_id)
            periodos = {fila.estado_cuenta.period for fila in filas}
            facturas = self._facturas_disponibles(user_id, periodos)

            transacciones = [BankTransaction.desde_orm(fila) for fila in filas]
            invoices = [Invoice.desde_orm(f) for f in facturas]
            resultados = encontrar_mejores_matches(transacciones, invoices, config)

            filas_por_id = {fila.id: fila for fila in filas}
            aplicados: List[MatchResult] = []
            fallidos = 0
            for match in resultados:
                try:
                    with self.db.begin_nested():
                        self._aplicar_match(filas_por_id[match.transaction_id], match, MetodoMatch.AUTO)
                    aplicados.append(match)
                except SQLAlchemyError as e:
                    fallidos += 1
                    logger.error(
                        f"❌ No se pudo guardar match {match.transaction_id} → {match.invoice_id}: {e}"
                    )

            self._commit("matching automático")

            reporte = generar_reporte(transacciones, aplicados)
            logger.info(
                f"✅ Matching completado ({alcance}): {len(aplicados)} aplicados, {fallidos} fallidos"
            )
            return {
                "user_id": user_id,
                "alcance": alcance,
                "total_facturas": len(invoices),
                "aplicados": len(aplicados),
                "fallidos": fallidos,
                **reporte,
            }

    # === REVISIÓN MANUAL ===

    def obtener_sugerencias_transaccion(
        self,
        user_id: str,
        transaction_id: str,
        limite: int = LIMITE_SUGERENCIAS,
        config: Optional[MatchingConfig] = None,
    ) -> List[MatchResult]:
        fila = self._obtener_transaccion(user_id, transaction_id)
        facturas = facturas_periodos(self.db, user_id, [fila.estado_cuenta.period])
        return obtener_sugerencias(
            BankTransaction.desde_orm(fila),
            [Invoice.desde_orm(f) for f in facturas],
            config or MatchingConfig.desde_settings(),
            limite,
        )

    def conciliar_manual(
        self,
        user_id: str,
        transaction_id: str,
        invoice_id: str,
        config: Optional[MatchingConfig] = None,
    ) -> Dict[str, Any]:
        """
        Asigna manualmente una factura a una transacción

        La confianza se guarda sólo si el par pasa el scorer; si no, queda nula.
        """
        fila = self._obtener_transaccion(user_id, transaction_id)
        if fila.matched_invoice_id:
            raise MatchYaAsignadoError(transaction_id, invoice_id, "la transacción ya está conciliada")

        factura = self.db.query(Factura).filter(
            Factura.id == invoice_id,
            Factura.user_id == user_id,
        ).first()
        if not factura:
            raise FacturaNoEncontradaError(invoice_id)
        if factura.status != EstatusFactura.VIGENTE.value:
            raise ValidacionDatosError("invoice_id", invoice_id, "la factura está cancelada")

        ocupada = self.db.query(TransaccionBancaria.id).filter(
            TransaccionBancaria.matched_invoice_id == invoice_id,
        ).first()
        if ocupada:
            raise MatchYaAsignadoError(
                transaction_id, invoice_id, f"la factura ya está asignada a la transacción {ocupada[0]}"
            )

        match = calcular_match(
            BankTransaction.desde_orm(fila),
            Invoice.desde_orm(factura),
            config or MatchingConfig.desde_settings(),
        )
        fila.matched_invoice_id = invoice_id
        fila.match_confidence = match.confidence if match else None
        fila.match_method = MetodoMatch.MANUAL.value
        self.db.add(IntentoConciliacion(
            transaction_id=fila.id,
            invoice_id=invoice_id,
            confidence_score=match.confidence if match else None,
            match_factors=match.match_factors.to_dict() if match else None,
            match_method=MetodoMatch.MANUAL.value,
            was_selected=True,
        ))
        self._commit("conciliación manual")

        logger.info(f"✋ Conciliación manual: {transaction_id} → {invoice_id}")
        return {
            "transactionId": fila.id,
            "invoiceId": invoice_id,
            "confidence": float(match.confidence) if match else None,
            "method": MetodoMatch.MANUAL.value,
        }

    def deshacer_match(self, user_id: str, transaction_id: str) -> Dict[str, Any]:
        fila = self._obtener_transaccion(user_id, transaction_id)
        anterior = fila.matched_invoice_id

        fila.matched_invoice_id = None
        fila.match_confidence = None
        fila.match_method = None
        self._commit("deshacer match")

        if anterior:
            logger.info(f"↩️ Match deshecho: {transaction_id} (factura {anterior})")
        return {"transactionId": fila.id, "previousInvoiceId": anterior, "undone": anterior is not None}

    # === CONCILIACIÓN POR PERIODO ===

    def calcular_conciliacion_periodo(self, user_id: str, period: str) -> ResumenConciliacion:
        """
        Calcula la conciliación del periodo y la guarda (una fila por usuario y periodo)
        """
        period = validar_periodo(period)
        transacciones = [BankTransaction.desde_orm(f) for f in transacciones_periodo(self.db, user_id, period)]
        facturas = [
            Invoice.desde_orm(f)
            for f in facturas_periodos(self.db, user_id, [period], solo_vigentes=False)
        ]
        resumen = calcular_conciliacion(period, transacciones, facturas)

        fila = self.db.query(ConciliacionPeriodo).filter(
            ConciliacionPeriodo.user_id == user_id,
            ConciliacionPeriodo.period == period,
        ).first()
        if not fila:
            fila = ConciliacionPeriodo(user_id=user_id, period=period)
            self.db.add(fila)

        fila.status = resumen.status.value
        fila.total_ingresos_banco = resumen.total_ingresos_banco
        fila.total_ingresos_facturas = resumen.total_ingresos_facturas
        fila.diferencia_ingresos = resumen.diferencia_ingresos
        fila.total_egresos_banco = resumen.total_egresos_banco
        fila.total_egresos_facturas = resumen.total_egresos_facturas
        fila.diferencia_egresos = resumen.diferencia_egresos
        self._commit("calcular conciliación")

        logger.info(
            f"📊 Conciliación {period} para {user_id}: {resumen.status.value} "
            f"(ingresos {formatear_monto(resumen.diferencia_ingresos)}, egresos {formatear_monto(resumen.diferencia_egresos)})"
        )
        return resumen

    def obtener_conciliaciones(self, user_id: str, period: Optional[str] = None) -> List[ConciliacionPeriodo]:
        query = self.db.query(ConciliacionPeriodo).filter(ConciliacionPeriodo.user_id == user_id)
        if period:
            query = query.filter(ConciliacionPeriodo.period == validar_periodo(period))
        return query.order_by(ConciliacionPeriodo.period.desc()).all()

    # === HELPERS ===

    def _obtener_transaccion(self, user_id: str, transaction_id: str) -> TransaccionBancaria:
        fila = (
            self.db.query(TransaccionBancaria)
            .join(EstadoCuenta, TransaccionBancaria.statement_id == EstadoCuenta.id)
            .filter(TransaccionBancaria.id == transaction_id, EstadoCuenta.user_id == user_id)
            .first()
        )
        if not fila:
            raise TransaccionNoEncontradaError(transaction_id)
        return fila

    def _periodos_alcance(
        self,
        user_id: str,
        period: Optional[str],
        statement_id: Optional[str],
    ) -> List[str]:
        # Una corrida por estado de cuenta bloquea el periodo completo del estado
        if not statement_id:
            return [period]
        return [
            p for (p,) in self.db.query(EstadoCuenta.period)
            .filter(EstadoCuenta.id == statement_id, EstadoCuenta.user_id == user_id)
            .all()
        ]

    def _transacciones_sin_conciliar(
        self,
        user_id: str,
        period: Optional[str],
        statement_id: Optional[str],
    ) -> List[TransaccionBancaria]:
        query = (
            self.db.query(TransaccionBancaria)
            .join(EstadoCuenta, TransaccionBancaria.statement_id == EstadoCuenta.id)
            .filter(EstadoCuenta.user_id == user_id, TransaccionBancaria.matched_invoice_id.is_(None))
        )
        if statement_id:
            query = query.filter(TransaccionBancaria.statement_id == statement_id)
        else:
            query = query.filter(EstadoCuenta.period == period)
        return query.order_by(TransaccionBancaria.date.asc(), TransaccionBancaria.id.asc()).all()

    def _facturas_disponibles(self, user_id: str, periodos: Iterable[str]) -> List[Factura]:
        # Una factura ya empatada en una corrida anterior no se vuelve a ofrecer
        ocupadas = {
            invoice_id for (invoice_id,) in self.db.query(TransaccionBancaria.matched_invoice_id)
            .filter(TransaccionBancaria.matched_invoice_id.isnot(None))
            .all()
        }
        return [f for f in facturas_periodos(self.db, user_id, periodos) if f.id not in ocupadas]

    def _aplicar_match(self, fila: TransaccionBancaria, match: MatchResult, metodo: MetodoMatch) -> None:
        fila.matched_invoice_id = match.invoice_id
        fila.match_confidence = match.confidence
        fila.match_method = metodo.value
        self.db.flush()
        self._registrar_intento(match, metodo)

    def _registrar_intento(self, match: MatchResult, metodo: MetodoMatch) -> None:
        self.db.add(IntentoConciliacion(
            transaction_id=match.transaction_id,
            invoice_id=match.invoice_id,
            confidence_score=match.confidence,
            match_factors=match.match_factors.to_dict(),
            match_method=metodo.value,
            was_selected=True,
        ))
        self.db.flush()

    def _commit(self, operacion: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Error de base de datos en {operacion}: {e}")
            raise handle_database_error(e, operacion)

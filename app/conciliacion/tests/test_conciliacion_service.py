"""
Tests del servicio de conciliación contra SQLite en memoria
"""

import pytest
from decimal import Decimal
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from app.conciliacion.exceptions import (
    ConciliacionEnCursoError, FacturaNoEncontradaError, MatchYaAsignadoError,
    PeriodoInvalidoError, TransaccionNoEncontradaError, ValidacionDatosError,
)
from app.conciliacion.models import (
    ConciliacionPeriodo, EstadoCuenta, IntentoConciliacion, TransaccionBancaria,
)
from app.conciliacion.registros import MatchingConfig
from app.conciliacion.services.bloqueos import RegistroBloqueos
from app.conciliacion.services.conciliacion_service import ConciliacionService


@pytest.fixture
def bloqueos():
    return RegistroBloqueos()


@pytest.fixture
def service(datos, bloqueos):
    return ConciliacionService(datos, bloqueos)


def transaccion(db, transaction_id):
    return db.query(TransaccionBancaria).filter(TransaccionBancaria.id == transaction_id).one()


class TestMatchingAutomatico:

    def test_aplica_matches_y_bitacora(self, service, datos):
        resultado = service.ejecutar_matching_automatico("user-1", period="2024-01", config=MatchingConfig())

        assert resultado["aplicados"] == 2
        assert resultado["fallidos"] == 0
        assert resultado["alcance"] == "period:2024-01"
        assert [d["transactionId"] for d in resultado["detalles"]] == ["t1", "t2"]

        t1 = transaccion(datos, "t1")
        assert t1.matched_invoice_id == "f1"
        assert t1.match_confidence == Decimal("0.93")
        assert t1.match_method == "auto"
        assert transaccion(datos, "t2").matched_invoice_id == "f2"
        assert transaccion(datos, "t3").matched_invoice_id is None

        intentos = datos.query(IntentoConciliacion).order_by(IntentoConciliacion.transaction_id).all()
        assert [(i.transaction_id, i.invoice_id, i.was_selected) for i in intentos] == [
            ("t1", "f1", True), ("t2", "f2", True),
        ]
        assert intentos[0].match_factors["rfcMatch"] == 1.0

    def test_no_toca_otros_usuarios(self, service, datos):
        service.ejecutar_matching_automatico("user-1", period="2024-01", config=MatchingConfig())
        assert transaccion(datos, "t9").matched_invoice_id is None

    def test_segunda_corrida_no_reasigna(self, service):
        service.ejecutar_matching_automatico("user-1", period="2024-01", config=MatchingConfig())
        resultado = service.ejecutar_matching_automatico("user-1", period="2024-01", config=MatchingConfig())

        assert resultado["aplicados"] == 0
        assert resultado["resumen"]["transacciones_sin_match"] == 1

    def test_alcance_por_estado_de_cuenta(self, service):
        resultado = service.ejecutar_matching_automatico("user-1", statement_id="st-1", config=MatchingConfig())
        assert resultado["alcance"] == "statement:st-1"
        assert resultado["aplicados"] == 2

    def test_requiere_alcance(self, service):
        with pytest.raises(ValidacionDatosError):
            service.ejecutar_matching_automatico("user-1")

    def test_periodo_invalido(self, service):
        with pytest.raises(PeriodoInvalidoError):
            service.ejecutar_matching_automatico("user-1", period="2024-1")

    def test_corrida_concurrente_rechazada(self, service, bloqueos):
        with bloqueos.bloquear("user-1", "2024-01"):
            with pytest.raises(ConciliacionEnCursoError):
                service.ejecutar_matching_automatico("user-1", period="2024-01", config=MatchingConfig())

        # Al salir se libera y la corrida procede
        assert not bloqueos.en_curso("user-1", "2024-01")
        assert service.ejecutar_matching_automatico(
            "user-1", period="2024-01", config=MatchingConfig()
        )["aplicados"] == 2

    def test_otro_alcance_no_bloquea(self, service, bloqueos):
        with bloqueos.bloquear("user-1", "2024-02"):
            resultado = service.ejecutar_matching_automatico("user-1", period="2024-01", config=MatchingConfig())
        assert resultado["aplicados"] == 2

    def test_corrida_por_estado_bloquea_su_periodo(self, service, datos, bloqueos):
        datos.add(EstadoCuenta(id="st-3", user_id="user-1", period="2024-01", bank_name="Santander"))
        datos.commit()
        concurrente = ConciliacionService(datos, bloqueos)
        rechazos = []

        def corrida_en_paralelo(fila, match, metodo):
            for alcance in ({"period": "2024-01"}, {"statement_id": "st-1"}, {"statement_id": "st-3"}):
                with pytest.raises(ConciliacionEnCursoError):
                    concurrente.ejecutar_matching_automatico("user-1", config=MatchingConfig(), **alcance)
                rechazos.append(alcance)

        with patch.object(service, "_aplicar_match", side_effect=corrida_en_paralelo):
            service.ejecutar_matching_automatico("user-1", statement_id="st-1", config=MatchingConfig())

        assert len(rechazos) == 6
        assert not bloqueos.en_curso("user-1", "2024-01")

    def test_corrida_por_periodo_bloquea_estados_del_periodo(self, service, bloqueos):
        with bloqueos.bloquear("user-1", "2024-01"):
            with pytest.raises(ConciliacionEnCursoError):
                service.ejecutar_matching_automatico("user-1", statement_id="st-1", config=MatchingConfig())

    def test_bloqueo_de_varios_periodos_es_atomico(self, bloqueos):
        with bloqueos.bloquear("user-1", "2024-02"):
            with pytest.raises(ConciliacionEnCursoError):
                with bloqueos.bloquear("user-1", "2024-03", "2024-02"):
                    pass
            # Ninguno de los periodos quedó tomado por el intento fallido
            assert not bloqueos.en_curso("user-1", "2024-03")

    def test_falla_de_escritura_se_omite(self, service, datos):
        original = ConciliacionService._registrar_intento
        llamadas = []

        def falla_la_primera(self, match, metodo):
            llamadas.append(match.transaction_id)
            if len(llamadas) == 1:
                raise OperationalError("INSERT INTO matching_attempts", {}, Exception("disk I/O error"))
            return original(self, match, metodo)

        with patch.object(ConciliacionService, "_registrar_intento", falla_la_primera):
            resultado = service.ejecutar_matching_automatico("user-1", period="2024-01", config=MatchingConfig())

        assert resultado["aplicados"] == 1
        assert resultado["fallidos"] == 1
        assert llamadas == ["t1", "t2"]
        assert transaccion(datos, "t1").matched_invoice_id is None
        assert transaccion(datos, "t2").matched_invoice_id == "f2"
        assert datos.query(IntentoConciliacion).count() == 1


class TestRevisionManual:

    def test_sugerencias(self, service):
        sugerencias = service.obtener_sugerencias_transaccion("user-1", "t1", config=MatchingConfig())
        assert [s.invoice_id for s in sugerencias] == ["f1"]

    def test_sugerencias_transaccion_ajena(self, service):
        with pytest.raises(TransaccionNoEncontradaError):
            service.obtener_sugerencias_transaccion("user-1", "t9")

    def test_conciliar_manual(self, service, datos):
        resultado = service.conciliar_manual("user-1", "t1", "f1", config=MatchingConfig())

        assert resultado["method"] == "manual"
        assert resultado["confidence"] == 0.93
        t1 = transaccion(datos, "t1")
        assert t1.matched_invoice_id == "f1"
        assert t1.match_method == "manual"
        assert datos.query(IntentoConciliacion).one().match_method == "manual"

    def test_conciliar_manual_sin_score(self, service, datos):
        # 999 contra 11600 no pasa el scorer: se guarda sin confianza
        resultado = service.conciliar_manual("user-1", "t3", "f1", config=MatchingConfig())

        assert resultado["confidence"] is None
        t3 = transaccion(datos, "t3")
        assert t3.matched_invoice_id == "f1"
        assert t3.match_confidence is None

    def test_factura_ya_asignada(self, service):
        service.conciliar_manual("user-1", "t1", "f1", config=MatchingConfig())
        with pytest.raises(MatchYaAsignadoError):
            service.conciliar_manual("user-1", "t3", "f1", config=MatchingConfig())

    def test_transaccion_ya_conciliada(self, service):
        service.conciliar_manual("user-1", "t1", "f1", config=MatchingConfig())
        with pytest.raises(MatchYaAsignadoError):
            service.conciliar_manual("user-1", "t1", "f2", config=MatchingConfig())

    def test_factura_de_otro_usuario(self, service):
        with pytest.raises(FacturaNoEncontradaError):
            service.conciliar_manual("user-1", "t1", "f4", config=MatchingConfig())

    def test_factura_cancelada(self, service):
        with pytest.raises(ValidacionDatosError):
            service.conciliar_manual("user-1", "t1", "f3", config=MatchingConfig())

    def test_deshacer_match(self, service, datos):
        service.conciliar_manual("user-1", "t1", "f1", config=MatchingConfig())

        resultado = service.deshacer_match("user-1", "t1")

        assert resultado == {"transactionId": "t1", "previousInvoiceId": "f1", "undone": True}
        t1 = transaccion(datos, "t1")
        assert t1.matched_invoice_id is None
        assert t1.match_method is None

    def test_deshacer_sin_match(self, service):
        assert service.deshacer_match("user-1", "t3")["undone"] is False


class TestConciliacionPeriodo:

    def test_con_diferencias_y_upsert(self, service, datos):
        resumen = service.calcular_conciliacion_periodo("user-1", "2024-01")

        assert resumen.status.value == "con_diferencias"
        assert resumen.total_ingresos_banco == Decimal("12599.00")
        assert resumen.total_ingresos_facturas == Decimal("11600.00")
        assert resumen.total_invoices == 2

        service.ejecutar_matching_automatico("user-1", period="2024-01", config=MatchingConfig())
        service.calcular_conciliacion_periodo("user-1", "2024-01")

        filas = datos.query(ConciliacionPeriodo).filter(ConciliacionPeriodo.user_id == "user-1").all()
        assert len(filas) == 1
        assert filas[0].diferencia_ingresos == Decimal("999.00")

    def test_periodo_sin_datos(self, service):
        assert service.calcular_conciliacion_periodo("user-1", "2023-12").status.value == "pendiente"

    def test_obtener_conciliaciones(self, service):
        service.calcular_conciliacion_periodo("user-1", "2024-01")
        service.calcular_conciliacion_periodo("user-1", "2024-02")

        assert [c.period for c in service.obtener_conciliaciones("user-1")] == ["2024-02", "2024-01"]
        assert len(service.obtener_conciliaciones("user-1", "2024-01")) == 1
        assert service.obtener_conciliaciones("user-2") == []

import pytest
from decimal import Decimal

from app.conciliacion.agregador import (
    EstadoConciliacion, TOLERANCIA_DIFERENCIA, calcular_conciliacion, clasificar_estado,
)
from app.conciliacion.exceptions import PeriodoInvalidoError
from app.conciliacion.registros import BankTransaction, Invoice


def tx(id, amount, direction="ingreso", matched=None):
    return BankTransaction(
        id=id, statement_id="st-1", date="2024-01-10", description="SPEI",
        amount=amount, direction=direction, matched_invoice_id=matched,
    )


def inv(id, total, direction="emitida", status="vigente"):
    return Invoice(
        id=id, user_id="user-1", uuid_fiscal=f"uuid-{id}", direction=direction, fecha="2024-01-10",
        rfc_emisor="EMI010101AAA", rfc_receptor="REC010101AAA",
        subtotal=total, total=total, period="2024-01", status=status,
    )


class TestCalcularConciliacion:

    def test_periodo_vacio_pendiente(self):
        resumen = calcular_conciliacion("2024-01", [], [])
        assert resumen.status is EstadoConciliacion.PENDIENTE
        assert resumen.total_ingresos_banco == Decimal("0")

    def test_completo(self):
        transacciones = [tx("t1", "1000", matched="f1"), tx("t2", "500", "egreso", matched="f2")]
        facturas = [inv("f1", "1000.50"), inv("f2", "500", "recibida")]

        resumen = calcular_conciliacion("2024-01", transacciones, facturas)

        assert resumen.status is EstadoConciliacion.COMPLETO
        assert resumen.diferencia_ingresos == Decimal("-0.50")
        assert resumen.unmatched_transactions == 0
        assert resumen.unmatched_invoices == 0

    def test_factura_sin_match_es_con_diferencias(self):
        transacciones = [tx("t1", "1000", matched="f1")]
        facturas = [inv("f1", "1000"), inv("f2", "0")]

        resumen = calcular_conciliacion("2024-01", transacciones, facturas)

        assert resumen.diferencia_ingresos == Decimal("0")
        assert resumen.diferencia_egresos == Decimal("0")
        assert resumen.unmatched_invoices == 1
        assert resumen.status is EstadoConciliacion.CON_DIFERENCIAS

    def test_diferencia_mayor_a_tolerancia(self):
        transacciones = [tx("t1", "1000", matched="f1")]
        facturas = [inv("f1", "1001.01")]
        resumen = calcular_conciliacion("2024-01", transacciones, facturas)
        assert resumen.status is EstadoConciliacion.CON_DIFERENCIAS

    def test_solo_transacciones(self):
        resumen = calcular_conciliacion("2024-01", [tx("t1", "1000")], [])
        assert resumen.status is EstadoConciliacion.CON_DIFERENCIAS
        assert resumen.unmatched_transactions == 1

    def test_canceladas_no_cuentan(self):
        transacciones = [tx("t1", "1000", matched="f1")]
        facturas = [inv("f1", "1000"), inv("f2", "2000", status="cancelado")]

        resumen = calcular_conciliacion("2024-01", transacciones, facturas)

        assert resumen.total_ingresos_facturas == Decimal("1000")
        assert resumen.total_invoices == 1
        assert resumen.status is EstadoConciliacion.COMPLETO

    def test_periodo_invalido(self):
        with pytest.raises(PeriodoInvalidoError):
            calcular_conciliacion("2024/01", [], [])

    def test_to_dict(self):
        resumen = calcular_conciliacion(
            "2024-01",
            [tx("t1", "1200", matched="f1"), tx("t2", "300", "egreso")],
            [inv("f1", "1000")],
        )
        datos = resumen.to_dict()

        assert datos["status"] == "con_diferencias"
        assert datos["details"] == {
            "totalTransactions": 2,
            "matchedTransactions": 1,
            "unmatchedTransactions": 1,
            "totalInvoices": 1,
            "unmatchedInvoices": 0,
        }
        assert datos["summary"]["ingresos"] == {"banco": 1200.0, "facturas": 1000.0, "diferencia": 200.0}
        assert datos["summary"]["egresos"]["diferencia"] == 300.0


class TestClasificarEstado:

    def test_tolerancia_inclusiva(self):
        estado = clasificar_estado(True, True, TOLERANCIA_DIFERENCIA, -TOLERANCIA_DIFERENCIA, 0, 0)
        assert estado is EstadoConciliacion.COMPLETO

    def test_solo_facturas(self):
        estado = clasificar_estado(False, True, Decimal("0"), Decimal("0"), 0, 0)
        assert estado is EstadoConciliacion.CON_DIFERENCIAS

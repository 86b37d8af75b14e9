"""
Configuración centralizada de tasas fiscales para RESICO

Modifica este archivo para ajustar tasas y rangos; todos los cálculos de
impuestos usan estas constantes.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence, Tuple


@dataclass(frozen=True)
class TaxBracket:
    """Rango de ingreso mensual con límites inclusivos."""

    min_income: Decimal
    max_income: Decimal
    rate: Decimal

    def contiene(self, ingreso: Decimal) -> bool:
        return self.min_income <= ingreso <= self.max_income


# Tabla ISR RESICO personas físicas (SAT 2024), ingresos mensuales.
# Los límites inferiores terminan en .01 / .34 para no incluir dos veces la frontera.
ISR_RESICO_TABLE: Tuple[TaxBracket, ...] = (
    TaxBracket(Decimal("0"), Decimal("25000"), Decimal("0.01")),               # 1.00%
    TaxBracket(Decimal("25000.01"), Decimal("50000"), Decimal("0.011")),       # 1.10%
    TaxBracket(Decimal("50000.01"), Decimal("83333.33"), Decimal("0.015")),    # 1.50%
    TaxBracket(Decimal("83333.34"), Decimal("208333.33"), Decimal("0.02")),    # 2.00%
    TaxBracket(Decimal("208333.34"), Decimal("3500000"), Decimal("0.025")),    # 2.50%
)

# Tasa promedio cuando no se requiere el cálculo escalonado
ISR_RESICO_FLAT_RATE = Decimal("0.0125")

# Si los ingresos anuales lo exceden, el contribuyente sale del régimen
RESICO_ANNUAL_LIMIT = Decimal("3500000")

IVA_GENERAL_RATE = Decimal("0.16")
IVA_FRONTERA_RATE = Decimal("0.08")
IVA_RETENTION_RATE = Decimal("0.1067")  # 2/3 del IVA

# Día del mes siguiente en que vence la declaración mensual
DIA_LIMITE_PAGO = 17


def validar_tabla(tabla: Sequence[TaxBracket]) -> None:
    """
    Verifica que los rangos estén en orden ascendente, sin traslapes y
    sin huecos mayores a un centavo

    Raises:
        ValueError: Si la tabla es inconsistente
    """
    if not tabla:
        raise ValueError("La tabla de ISR está vacía")
    if tabla[0].min_income != 0:
        raise ValueError("El primer rango debe iniciar en 0")
    for anterior, actual in zip(tabla, tabla[1:]):
        if actual.min_income <= anterior.max_income:
            raise ValueError(f"Rangos traslapados: {anterior} / {actual}")
        if actual.min_income - anterior.max_income > Decimal("0.01"):
            raise ValueError(f"Hueco entre rangos: {anterior} / {actual}")
    for rango in tabla:
        if rango.min_income > rango.max_income:
            raise ValueError(f"Rango invertido: {rango}")


validar_tabla(ISR_RESICO_TABLE)

"""
Funciones auxiliares para el módulo de conciliación

Contiene utilidades de conversión, validación y formateo que se aplican
una sola vez en la frontera de ingesta, para que el scorer y el
agregador trabajen siempre con Decimal y date.
"""

import re
import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

from app.conciliacion.exceptions import ValidacionDatosError, PeriodoInvalidoError

logger = logging.getLogger(__name__)

CENTAVO = Decimal('0.01')


# === FUNCIONES DE CONVERSIÓN ===

def a_decimal(valor: Any, campo: str, *, permitir_negativo: bool = False) -> Decimal:
    """
    Convierte un monto a Decimal sin pasar por float binario

    Args:
        valor: str, int, float o Decimal
        campo: Nombre del campo (para el mensaje de error)
        permitir_negativo: Si False, un monto < 0 es un error de datos

    Returns:
        Decimal con el valor exacto

    Raises:
        ValidacionDatosError: Si el valor no es numérico o es negativo
    """
    if isinstance(valor, bool) or valor is None:
        raise ValidacionDatosError(campo, valor, "se requiere un monto numérico")

    if isinstance(valor, Decimal):
        resultado = valor
    else:
        try:
            # str() evita arrastrar el error binario de float a Decimal
            resultado = Decimal(str(valor).replace(',', '').replace('$', '').strip())
        except InvalidOperation:
            raise ValidacionDatosError(campo, valor, "no es un monto válido")

    if not resultado.is_finite():
        raise ValidacionDatosError(campo, valor, "no es un monto finito")
    if not permitir_negativo and resultado < 0:
        raise ValidacionDatosError(campo, valor, "no puede ser negativo")
    return resultado


def a_fecha(valor: Any, campo: str) -> date:
    """
    Convierte a date una fecha ISO ('2024-01-10', '2024-01-10T12:00:00') o un datetime
    """
    if isinstance(valor, datetime):
        return valor.date()
    if isinstance(valor, date):
        return valor
    if isinstance(valor, str) and valor.strip():
        texto = valor.strip()
        try:
            return date.fromisoformat(texto[:10])
        except ValueError:
            pass
    raise ValidacionDatosError(campo, valor, "fecha inválida (formato: YYYY-MM-DD)")


def redondear_monto(monto: Decimal) -> Decimal:
    """Redondea a centavos con redondeo comercial (half-up)"""
    return monto.quantize(CENTAVO, rounding=ROUND_HALF_UP)


# === FUNCIONES DE VALIDACIÓN ===

PATRON_PERIODO = re.compile(r'^(\d{4})-(\d{2})$')


def normalizar_rfc(rfc: Optional[str]) -> Optional[str]:
    """
    Normaliza un RFC para comparación: mayúsculas y sin espacios.
    Cadenas vacías se tratan como ausencia de RFC.
    """
    if rfc is None:
        return None
    rfc = rfc.strip().upper()
    return rfc or None


def validar_periodo(periodo: Any) -> str:
    """
    Valida un periodo 'YYYY-MM' y lo regresa sin cambios

    Raises:
        PeriodoInvalidoError: Si no cumple el formato o el mes está fuera de rango
    """
    if not isinstance(periodo, str):
        raise PeriodoInvalidoError(periodo)
    match = PATRON_PERIODO.match(periodo)
    if not match or not 1 <= int(match.group(2)) <= 12:
        raise PeriodoInvalidoError(periodo)
    return periodo


# === FUNCIONES DE FORMATEO ===

def formatear_monto(monto: Optional[Decimal]) -> str:
    """
    Formatea un monto como currency mexicano (solo para logs)
    """
    if monto is None:
        return "$0.00"

    monto_redondeado = redondear_monto(monto)
    if monto_redondeado < 0:
        return f"-${abs(monto_redondeado):,.2f}"
    return f"${monto_redondeado:,.2f}"


def formatear_porcentaje(valor: Optional[float]) -> str:
    """
    Formatea un valor entre 0 y 1 como porcentaje
    """
    if valor is None:
        return "0.00%"

    return f"{float(valor) * 100:.2f}%"

"""
Excepciones personalizadas para el módulo de conciliación y cálculo fiscal

Define una jerarquía de excepciones específicas para manejo de errores.
Un par transacción/factura descalificado NO es un error: el scorer
regresa None y nada de esto se lanza.
"""

from typing import Optional, Dict, Any


class ConciliacionError(Exception):
    """Excepción base para errores de conciliación"""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self):
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convierte la excepción a diccionario para APIs"""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "details": self.details
        }


class ValidacionDatosError(ConciliacionError):
    """Error de validación de datos en la frontera de ingesta"""

    def __init__(self, campo: str, valor: Any, regla: str):
        message = f"Error de validación en campo '{campo}': {regla}"
        super().__init__(
            message,
            "VALIDATION_ERROR",
            {"campo": campo, "valor": str(valor), "regla": regla}
        )


class PeriodoInvalidoError(ValidacionDatosError):
    """El periodo no tiene formato YYYY-MM"""

    def __init__(self, periodo: Any):
        super().__init__("period", periodo, "Periodo inválido (formato: YYYY-MM)")


class ConfiguracionInvalidaError(ConciliacionError):
    """Error en la configuración del matching o del sistema"""

    def __init__(self, parametro: str, valor_actual: Any, valor_esperado: str):
        message = f"Configuración inválida para {parametro}: {valor_actual}. Esperado: {valor_esperado}"
        super().__init__(
            message,
            "CONFIG_INVALID",
            {
                "parametro": parametro,
                "valor_actual": str(valor_actual),
                "valor_esperado": valor_esperado
            }
        )


class TransaccionNoEncontradaError(ConciliacionError):
    """Error cuando no se encuentra una transacción bancaria"""

    def __init__(self, transaction_id: str):
        message = f"No se encontró transacción bancaria con ID: {transaction_id}"
        super().__init__(message, "TRANSACTION_NOT_FOUND", {"transaction_id": transaction_id})


class FacturaNoEncontradaError(ConciliacionError):
    """Error cuando no se encuentra una factura"""

    def __init__(self, invoice_id: str):
        message = f"No se encontró factura con ID: {invoice_id}"
        super().__init__(message, "INVOICE_NOT_FOUND", {"invoice_id": invoice_id})


class ConciliacionEnCursoError(ConciliacionError):
    """Ya hay una corrida de matching activa para el mismo usuario y periodo"""

    def __init__(self, user_id: str, periodo: str):
        message = f"Ya existe una conciliación en curso para usuario {user_id} en {periodo}"
        super().__init__(
            message,
            "MATCHING_IN_PROGRESS",
            {"user_id": user_id, "period": periodo}
        )


class MatchYaAsignadoError(ConciliacionError):
    """La transacción o la factura ya forman parte de otro match"""

    def __init__(self, transaction_id: str, invoice_id: str, razon: str):
        message = f"No se puede empatar {transaction_id} con {invoice_id}: {razon}"
        super().__init__(
            message,
            "MATCH_CONFLICT",
            {"transaction_id": transaction_id, "invoice_id": invoice_id, "razon": razon}
        )


class DatabaseError(ConciliacionError):
    """Error de base de datos"""

    def __init__(self, operation: str, original_error: str):
        message = f"Error de base de datos en operación '{operation}': {original_error}"
        super().__init__(
            message,
            "DATABASE_ERROR",
            {"operation": operation, "original_error": original_error}
        )


# === HELPER FUNCTIONS ===

def handle_database_error(error: Exception, operation: str) -> DatabaseError:
    """
    Convierte errores de base de datos en DatabaseError
    """
    return DatabaseError(operation, str(error))


# === EXCEPTION MAPPER ===

EXCEPTION_STATUS_CODES = {
    TransaccionNoEncontradaError: 404,
    FacturaNoEncontradaError: 404,
    ConciliacionEnCursoError: 409,
    MatchYaAsignadoError: 409,
    ValidacionDatosError: 422,
    PeriodoInvalidoError: 400,
    ConfiguracionInvalidaError: 500,
    DatabaseError: 500,
    # Base
    ConciliacionError: 500
}


def get_http_status_code(exception: ConciliacionError) -> int:
    """
    Obtiene el código de estado HTTP apropiado para una excepción
    """
    return EXCEPTION_STATUS_CODES.get(type(exception), 500)

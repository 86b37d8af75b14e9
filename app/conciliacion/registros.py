"""
Registros tipados del núcleo de conciliación

Las filas de la base (o del JSON de la API) se convierten aquí, una sola
vez, a dataclasses inmutables con Decimal y date. El scorer, el selector
y el agregador nunca vuelven a castear ni a defenderse de None.
"""

from dataclasses import dataclass, fields
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from app.conciliacion.exceptions import ValidacionDatosError, ConfiguracionInvalidaError
from app.conciliacion.utils import a_decimal, a_fecha, normalizar_rfc, validar_periodo


# === ENUMS ===

class TipoTransaccion(str, Enum):
    """Dirección del movimiento bancario"""
    INGRESO = "ingreso"
    EGRESO = "egreso"


class TipoFactura(str, Enum):
    """Factura emitida o recibida, desde la perspectiva del contribuyente"""
    EMITIDA = "emitida"
    RECIBIDA = "recibida"


class EstatusFactura(str, Enum):
    """Estatus SAT de la factura"""
    VIGENTE = "vigente"
    CANCELADO = "cancelado"


class MetodoMatch(str, Enum):
    """Cómo se asignó la factura a la transacción"""
    AUTO = "auto"
    MANUAL = "manual"


def _enum(tipo, valor: Any, campo: str):
    try:
        return tipo(valor)
    except ValueError:
        permitidos = ", ".join(e.value for e in tipo)
        raise ValidacionDatosError(campo, valor, f"valor no permitido (esperado: {permitidos})")


def _opcional(valor: Any) -> Optional[str]:
    if valor is None:
        return None
    valor = str(valor).strip()
    return valor or None


# === REGISTROS ===

@dataclass(frozen=True)
class BankTransaction:
    """Movimiento de un estado de cuenta, ya extraído y validado."""

    id: str
    statement_id: str
    date: date
    description: str
    amount: Decimal
    direction: TipoTransaccion
    counterparty_rfc: Optional[str] = None
    matched_invoice_id: Optional[str] = None
    match_confidence: Optional[Decimal] = None
    match_method: Optional[MetodoMatch] = None

    def __post_init__(self) -> None:
        # frozen=True: las normalizaciones van por object.__setattr__
        object.__setattr__(self, "id", str(self.id))
        object.__setattr__(self, "statement_id", str(self.statement_id))
        object.__setattr__(self, "date", a_fecha(self.date, "date"))
        object.__setattr__(self, "description", self.description or "")
        object.__setattr__(self, "amount", a_decimal(self.amount, "amount"))
        object.__setattr__(self, "direction", _enum(TipoTransaccion, self.direction, "direction"))
        object.__setattr__(self, "counterparty_rfc", normalizar_rfc(self.counterparty_rfc))
        object.__setattr__(self, "matched_invoice_id", _opcional(self.matched_invoice_id))
        if self.match_confidence is not None:
            confianza = a_decimal(self.match_confidence, "match_confidence")
            if confianza > 1:
                raise ValidacionDatosError("match_confidence", confianza, "debe estar entre 0 y 1")
            object.__setattr__(self, "match_confidence", confianza)
        if self.match_method is not None:
            object.__setattr__(self, "match_method", _enum(MetodoMatch, self.match_method, "match_method"))

    @property
    def conciliada(self) -> bool:
        return self.matched_invoice_id is not None

    @classmethod
    def desde_dict(cls, datos: Mapping[str, Any]) -> "BankTransaction":
        """Construye desde una fila cruda; acepta 'type' como alias de 'direction'."""
        datos = dict(datos)
        if "direction" not in datos and "type" in datos:
            datos["direction"] = datos.pop("type")
        return cls(**_solo_campos(cls, datos))

    @classmethod
    def desde_orm(cls, fila: Any) -> "BankTransaction":
        return cls(
            id=fila.id,
            statement_id=fila.statement_id,
            date=fila.date,
            description=fila.description,
            amount=fila.amount,
            direction=fila.type,
            counterparty_rfc=fila.counterparty_rfc,
            matched_invoice_id=fila.matched_invoice_id,
            match_confidence=fila.match_confidence,
            match_method=fila.match_method,
        )


@dataclass(frozen=True)
class Invoice:
    """CFDI emitido o recibido, ya validado."""

    id: str
    user_id: str
    uuid_fiscal: str
    direction: TipoFactura
    fecha: date
    rfc_emisor: str
    rfc_receptor: str
    subtotal: Decimal
    total: Decimal
    period: str
    iva: Optional[Decimal] = None
    nombre_emisor: Optional[str] = None
    nombre_receptor: Optional[str] = None
    concepto: Optional[str] = None
    retained_iva: Decimal = Decimal("0")
    retained_isr: Decimal = Decimal("0")
    status: EstatusFactura = EstatusFactura.VIGENTE

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", str(self.id))
        object.__setattr__(self, "user_id", str(self.user_id))
        object.__setattr__(self, "direction", _enum(TipoFactura, self.direction, "direction"))
        object.__setattr__(self, "fecha", a_fecha(self.fecha, "fecha"))
        object.__setattr__(self, "rfc_emisor", normalizar_rfc(self.rfc_emisor) or "")
        object.__setattr__(self, "rfc_receptor", normalizar_rfc(self.rfc_receptor) or "")
        object.__setattr__(self, "subtotal", a_decimal(self.subtotal, "subtotal"))
        object.__setattr__(self, "total", a_decimal(self.total, "total"))
        # IVA nulo cuenta como cero
        iva = Decimal("0") if self.iva is None else a_decimal(self.iva, "iva")
        object.__setattr__(self, "iva", iva)
        object.__setattr__(self, "retained_iva", a_decimal(self.retained_iva or 0, "retained_iva"))
        object.__setattr__(self, "retained_isr", a_decimal(self.retained_isr or 0, "retained_isr"))
        object.__setattr__(self, "period", validar_periodo(self.period))
        object.__setattr__(self, "nombre_emisor", _opcional(self.nombre_emisor))
        object.__setattr__(self, "nombre_receptor", _opcional(self.nombre_receptor))
        object.__setattr__(self, "concepto", _opcional(self.concepto))
        object.__setattr__(self, "status", _enum(EstatusFactura, self.status or EstatusFactura.VIGENTE, "status"))

    @property
    def vigente(self) -> bool:
        return self.status is EstatusFactura.VIGENTE

    @classmethod
    def desde_dict(cls, datos: Mapping[str, Any]) -> "Invoice":
        """Construye desde una fila cruda; acepta 'type' como alias de 'direction'."""
        datos = dict(datos)
        if "direction" not in datos and "type" in datos:
            datos["direction"] = datos.pop("type")
        return cls(**_solo_campos(cls, datos))

    @classmethod
    def desde_orm(cls, fila: Any) -> "Invoice":
        return cls(
            id=fila.id,
            user_id=fila.user_id,
            uuid_fiscal=fila.uuid_fiscal,
            direction=fila.type,
            fecha=fila.fecha,
            rfc_emisor=fila.rfc_emisor,
            rfc_receptor=fila.rfc_receptor,
            subtotal=fila.subtotal,
            total=fila.total,
            period=fila.period,
            iva=fila.iva,
            nombre_emisor=fila.nombre_emisor,
            nombre_receptor=fila.nombre_receptor,
            concepto=fila.concepto,
            retained_iva=fila.retained_iva,
            retained_isr=fila.retained_isr,
            status=fila.status,
        )


def _solo_campos(cls, datos: Dict[str, Any]) -> Dict[str, Any]:
    nombres = {f.name for f in fields(cls)}
    return {k: v for k, v in datos.items() if k in nombres}


# === MATCHING ===

@dataclass(frozen=True)
class MatchingConfig:
    """
    Parámetros del scorer. Inmutable: cada corrida recibe su propia
    instancia explícita en vez de mutar un default global.
    """

    amount_tolerance: Decimal = Decimal("0.005")
    max_date_diff: int = 7
    min_confidence: Decimal = Decimal("0.65")

    def __post_init__(self) -> None:
        try:
            tolerancia = a_decimal(self.amount_tolerance, "amount_tolerance", permitir_negativo=True)
            confianza = a_decimal(self.min_confidence, "min_confidence", permitir_negativo=True)
        except ValidacionDatosError as e:
            raise ConfiguracionInvalidaError(e.details["campo"], e.details["valor"], "número")
        if tolerancia < 0:
            raise ConfiguracionInvalidaError("amount_tolerance", tolerancia, "valor >= 0")
        if not Decimal("0") <= confianza <= 1:
            raise ConfiguracionInvalidaError("min_confidence", confianza, "valor entre 0 y 1")
        try:
            dias = int(self.max_date_diff)
        except (TypeError, ValueError):
            raise ConfiguracionInvalidaError("max_date_diff", self.max_date_diff, "entero >= 0")
        if isinstance(self.max_date_diff, bool) or dias < 0:
            raise ConfiguracionInvalidaError("max_date_diff", self.max_date_diff, "entero >= 0")
        object.__setattr__(self, "amount_tolerance", tolerancia)
        object.__setattr__(self, "min_confidence", confianza)
        object.__setattr__(self, "max_date_diff", dias)

    @classmethod
    def desde_settings(cls) -> "MatchingConfig":
        """Construye la configuración con los valores de entorno (MATCH_*)."""
        from app.core.settings import settings

        return cls(
            amount_tolerance=settings.MATCH_AMOUNT_TOLERANCE,
            max_date_diff=settings.MATCH_MAX_DATE_DIFF,
            min_confidence=settings.MATCH_MIN_CONFIDENCE,
        )


DEFAULT_CONFIG = MatchingConfig()


@dataclass(frozen=True)
class MatchFactors:
    """Los cuatro componentes del score, conservados para auditoría."""

    amount_match: Decimal
    date_proximity: Decimal
    rfc_match: Decimal
    description_match: Decimal

    def to_dict(self) -> Dict[str, float]:
        # Mismas llaves que la bitácora matching_attempts.match_factors
        return {
            "amountMatch": float(self.amount_match),
            "dateProximity": float(self.date_proximity),
            "rfcMatch": float(self.rfc_match),
            "descriptionMatch": float(self.description_match),
        }


@dataclass(frozen=True)
class MatchResult:
    transaction_id: str
    invoice_id: str
    confidence: Decimal
    match_factors: MatchFactors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transactionId": self.transaction_id,
            "invoiceId": self.invoice_id,
            "confidence": float(self.confidence),
            "factors": self.match_factors.to_dict(),
        }

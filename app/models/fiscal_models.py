import uuid

from sqlalchemy import Column, String, DECIMAL, Date, DateTime, Text, Index, UniqueConstraint
from sqlalchemy.sql import func

from app.core.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class Factura(Base):
    """Modelo para tabla invoices (CFDIs emitidos y recibidos)"""
    __tablename__ = "invoices"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False)
    uuid_fiscal = Column(String(36), nullable=False, unique=True)
    type = Column(String(10), nullable=False)  # emitida | recibida
    fecha = Column(Date, nullable=False)
    rfc_emisor = Column(String(13), nullable=False)
    nombre_emisor = Column(String(500))
    rfc_receptor = Column(String(13), nullable=False)
    nombre_receptor = Column(String(500))
    subtotal = Column(DECIMAL(12, 2), nullable=False)
    iva = Column(DECIMAL(12, 2))
    total = Column(DECIMAL(12, 2), nullable=False)
    retained_iva = Column(DECIMAL(12, 2), nullable=False, default=0)
    retained_isr = Column(DECIMAL(12, 2), nullable=False, default=0)
    concepto = Column(Text)
    period = Column(String(7), nullable=False)  # YYYY-MM
    status = Column(String(10), nullable=False, default="vigente")  # vigente | cancelado
    created_at = Column(DateTime, nullable=False, default=func.current_timestamp())

    __table_args__ = (
        Index('idx_invoice_user_period', 'user_id', 'period'),
    )

    def __repr__(self):
        return f"<Factura(id={self.id}, uuid_fiscal='{self.uuid_fiscal}', total={self.total})>"


class CalculoImpuesto(Base):
    """Modelo para tabla tax_calculations (uno por usuario y periodo)"""
    __tablename__ = "tax_calculations"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False)
    period = Column(String(7), nullable=False)
    base_isr = Column(DECIMAL(14, 2), nullable=False, default=0)
    tasa_isr = Column(DECIMAL(6, 4), nullable=False, default=0)
    isr_calculado = Column(DECIMAL(14, 2), nullable=False, default=0)
    isr_retenido = Column(DECIMAL(14, 2), nullable=False, default=0)
    isr_a_pagar = Column(DECIMAL(14, 2), nullable=False, default=0)
    iva_trasladado = Column(DECIMAL(14, 2), nullable=False, default=0)
    iva_acreditable = Column(DECIMAL(14, 2), nullable=False, default=0)
    iva_retenido = Column(DECIMAL(14, 2), nullable=False, default=0)
    iva_a_pagar = Column(DECIMAL(14, 2), nullable=False, default=0)
    iva_a_favor = Column(DECIMAL(14, 2), nullable=False, default=0)
    fecha_limite_pago = Column(Date, nullable=False)
    status = Column(String(10), nullable=False, default="pendiente")  # pendiente | pagado | vencido
    created_at = Column(DateTime, nullable=False, default=func.current_timestamp())
    updated_at = Column(DateTime, nullable=False, default=func.current_timestamp(), onupdate=func.current_timestamp())

    __table_args__ = (
        UniqueConstraint('user_id', 'period', name='uq_tax_calculation_user_period'),
    )

    def __repr__(self):
        return f"<CalculoImpuesto(user_id='{self.user_id}', period='{self.period}', isr_a_pagar={self.isr_a_pagar})>"

"""
Modelos de base de datos para el módulo de conciliación bancaria
"""

import uuid

from sqlalchemy import (
    Column, String, DECIMAL, Date, DateTime, Boolean, Text, JSON, ForeignKey, Index, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.core.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


# === MODELOS ===

class EstadoCuenta(Base):
    """
    Estado de cuenta bancario subido por el usuario

    Las transacciones las crea el servicio externo de extracción; aquí sólo
    se guardan para conciliar.
    """
    __tablename__ = "bank_statements"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False)
    period = Column(String(7), nullable=False)  # YYYY-MM
    bank_name = Column(String(100))
    status = Column(String(20), nullable=False, default="completed")
    created_at = Column(DateTime, nullable=False, default=func.current_timestamp())

    transacciones = relationship("TransaccionBancaria", back_populates="estado_cuenta")

    __table_args__ = (
        Index('idx_statement_user_period', 'user_id', 'period'),
    )

    def __repr__(self):
        return f"<EstadoCuenta(id={self.id}, period='{self.period}', user_id='{self.user_id}')>"


class TransaccionBancaria(Base):
    """
    Movimiento bancario de un estado de cuenta

    Los campos de match sólo los escribe el servicio de conciliación.
    """
    __tablename__ = "bank_transactions"

    id = Column(String(36), primary_key=True, default=_uuid)
    statement_id = Column(String(36), ForeignKey("bank_statements.id", ondelete="CASCADE"), nullable=False)

    date = Column(Date, nullable=False)
    description = Column(Text, nullable=False, default="")
    amount = Column(DECIMAL(12, 2), nullable=False)
    type = Column(String(10), nullable=False)  # ingreso | egreso
    category = Column(String(100))
    counterparty_rfc = Column(String(13))

    # Estado de conciliación
    matched_invoice_id = Column(String(36), ForeignKey("invoices.id", ondelete="SET NULL"))
    match_confidence = Column(DECIMAL(3, 2))  # 0.00 a 1.00
    match_method = Column(String(10))  # auto | manual

    created_at = Column(DateTime, nullable=False, default=func.current_timestamp())

    estado_cuenta = relationship("EstadoCuenta", back_populates="transacciones")

    __table_args__ = (
        Index('idx_transaction_statement', 'statement_id'),
        Index('idx_transaction_matched_invoice', 'matched_invoice_id'),
    )

    def __repr__(self):
        return f"<TransaccionBancaria(id={self.id}, date={self.date}, amount={self.amount}, type='{self.type}')>"


class IntentoConciliacion(Base):
    """
    Bitácora de matches aplicados, con el desglose completo de factores
    """
    __tablename__ = "matching_attempts"

    id = Column(String(36), primary_key=True, default=_uuid)
    transaction_id = Column(String(36), ForeignKey("bank_transactions.id", ondelete="CASCADE"), nullable=False)
    invoice_id = Column(String(36), ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False)
    confidence_score = Column(DECIMAL(3, 2))
    match_factors = Column(JSON)
    match_method = Column(String(10), nullable=False, default="auto")
    was_selected = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=func.current_timestamp())

    __table_args__ = (
        Index('idx_attempt_transaction', 'transaction_id'),
    )


class ConciliacionPeriodo(Base):
    """
    Resultado de conciliación de un usuario en un periodo (uno por periodo)
    """
    __tablename__ = "reconciliations"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False)
    period = Column(String(7), nullable=False)
    status = Column(String(20), nullable=False, default="pendiente")

    total_ingresos_banco = Column(DECIMAL(14, 2), nullable=False, default=0)
    total_ingresos_facturas = Column(DECIMAL(14, 2), nullable=False, default=0)
    diferencia_ingresos = Column(DECIMAL(14, 2), nullable=False, default=0)
    total_egresos_banco = Column(DECIMAL(14, 2), nullable=False, default=0)
    total_egresos_facturas = Column(DECIMAL(14, 2), nullable=False, default=0)
    diferencia_egresos = Column(DECIMAL(14, 2), nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=func.current_timestamp())
    updated_at = Column(DateTime, nullable=False, default=func.current_timestamp(), onupdate=func.current_timestamp())

    __table_args__ = (
        UniqueConstraint('user_id', 'period', name='uq_reconciliation_user_period'),
    )

    def __repr__(self):
        return f"<ConciliacionPeriodo(user_id='{self.user_id}', period='{self.period}', status='{self.status}')>"

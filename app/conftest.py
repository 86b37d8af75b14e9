"""
Fixtures compartidas: base SQLite en memoria con el esquema completo
"""

import os

# Antes de importar app.core: el engine global no debe apuntar a MySQL
os.environ.setdefault("DB_URL", "sqlite://")

import pytest  # noqa: E402
from datetime import date  # noqa: E402
from decimal import Decimal  # noqa: E402

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.core.database import Base, registrar_modelos  # noqa: E402
from app.conciliacion.models import EstadoCuenta, TransaccionBancaria  # noqa: E402
from app.models.fiscal_models import Factura  # noqa: E402


@pytest.fixture
def engine():
    registrar_modelos()
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    SesionPrueba = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = SesionPrueba()
    yield session
    session.close()


@pytest.fixture
def datos(db):
    """
    Usuario con un estado de cuenta de enero 2024:
    t1 ↔ f1 (ingreso con RFC), t2 ↔ f2 (egreso sin RFC), t3 sin factura.
    f3 está cancelada y f4 es de otro usuario.
    """
    db.add_all([
        EstadoCuenta(id="st-1", user_id="user-1", period="2024-01", bank_name="BBVA"),
        EstadoCuenta(id="st-2", user_id="user-2", period="2024-01", bank_name="Banorte"),
    ])
    db.add_all([
        Factura(
            id="f1", user_id="user-1", uuid_fiscal="uuid-f1", type="emitida", fecha=date(2024, 1, 15),
            rfc_emisor="USR010101AAA", rfc_receptor="REC010101AAA", nombre_receptor="Cliente Uno",
            subtotal=Decimal("10000.00"), iva=Decimal("1600.00"), total=Decimal("11600.00"),
            retained_isr=Decimal("125.00"), period="2024-01",
        ),
        Factura(
            id="f2", user_id="user-1", uuid_fiscal="uuid-f2", type="recibida", fecha=date(2024, 1, 19),
            rfc_emisor="PRO010101AAA", rfc_receptor="USR010101AAA",
            subtotal=Decimal("2000.00"), iva=Decimal("320.00"), total=Decimal("2320.00"), period="2024-01",
        ),
        Factura(
            id="f3", user_id="user-1", uuid_fiscal="uuid-f3", type="emitida", fecha=date(2024, 1, 16),
            rfc_emisor="USR010101AAA", rfc_receptor="REC010101AAA",
            subtotal=Decimal("10000.00"), iva=Decimal("1600.00"), total=Decimal("11600.00"),
            period="2024-01", status="cancelado",
        ),
        Factura(
            id="f4", user_id="user-2", uuid_fiscal="uuid-f4", type="emitida", fecha=date(2024, 1, 16),
            rfc_emisor="OTR010101AAA", rfc_receptor="REC010101AAA",
            subtotal=Decimal("10000.00"), iva=Decimal("1600.00"), total=Decimal("11600.00"), period="2024-01",
        ),
    ])
    db.flush()
    db.add_all([
        TransaccionBancaria(
            id="t1", statement_id="st-1", date=date(2024, 1, 16), description="SPEI RECIBIDO",
            amount=Decimal("11600.00"), type="ingreso", counterparty_rfc="REC010101AAA",
        ),
        TransaccionBancaria(
            id="t2", statement_id="st-1", date=date(2024, 1, 20), description="PAGO PROVEEDOR",
            amount=Decimal("2320.00"), type="egreso",
        ),
        TransaccionBancaria(
            id="t3", statement_id="st-1", date=date(2024, 1, 25), description="DEPOSITO EFECTIVO",
            amount=Decimal("999.00"), type="ingreso",
        ),
        TransaccionBancaria(
            id="t9", statement_id="st-2", date=date(2024, 1, 16), description="SPEI RECIBIDO",
            amount=Decimal("11600.00"), type="ingreso",
        ),
    ])
    db.commit()
    return db

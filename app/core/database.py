from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from typing import Generator, List
import logging

from app.core.settings import settings

logger = logging.getLogger(__name__)

TABLAS_REQUERIDAS = [
    "bank_statements",
    "bank_transactions",
    "invoices",
    "matching_attempts",
    "reconciliations",
    "tax_calculations",
]


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    # Configuraciones específicas de MySQL
    return {
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_recycle": 3600,  # Reciclar conexiones cada hora
        "connect_args": {"charset": "utf8mb4", "use_unicode": True},
    }


# Crear engine de base de datos
engine = create_engine(settings.DATABASE_URL, echo=False, **_engine_kwargs(settings.DATABASE_URL))

# Crear SessionLocal
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base para modelos
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """
    Generador de sesiones de base de datos para dependency injection
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def registrar_modelos() -> None:
    """Importa los modelos para que queden registrados en Base.metadata"""
    import app.conciliacion.models  # noqa: F401
    import app.models.fiscal_models  # noqa: F401


def tablas_faltantes() -> List[str]:
    existentes = set(inspect(engine).get_table_names())
    return [t for t in TABLAS_REQUERIDAS if t not in existentes]


def init_db(crear_tablas: bool = False) -> None:
    """
    Verifica que existan las tablas del esquema; opcionalmente las crea
    """
    registrar_modelos()
    try:
        if crear_tablas:
            Base.metadata.create_all(bind=engine, checkfirst=True)

        faltantes = tablas_faltantes()
        if faltantes:
            logger.warning(f"⚠️ Tablas no encontradas: {faltantes}. Verificar migración.")
        else:
            logger.info("✅ Tablas de conciliación disponibles")

        logger.info("Base de datos inicializada correctamente")
    except Exception as e:
        logger.error(f"Error al verificar tablas: {e}")
        raise


def test_db_connection() -> bool:
    """
    Probar conexión a la base de datos
    """
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
            logger.info("Conexión a base de datos exitosa")
            return True
    except Exception as e:
        logger.error(f"Error de conexión a base de datos: {e}")
        return False

#!/usr/bin/env python3
"""
Script de migración para crear las tablas de conciliación y cálculo fiscal
"""

import os
import sys
import logging
from datetime import datetime

# Agregar el directorio raíz al path
sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from sqlalchemy import text

from app.core.database import SessionLocal, TABLAS_REQUERIDAS, init_db, tablas_faltantes, test_db_connection
from app.core.settings import settings

# Configurar logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def verificar_integridad() -> bool:
    """Verifica que cada tabla acepte una consulta básica"""
    logger.info("🔍 Verificando integridad de las tablas...")
    with SessionLocal() as db:
        for tabla in TABLAS_REQUERIDAS:
            try:
                count = db.execute(text(f"SELECT COUNT(*) FROM {tabla}")).scalar()
                logger.info(f"✓ {tabla}: {count} registros")
            except Exception as e:
                logger.error(f"✗ Error en {tabla}: {e}")
                return False
    return True


def main():
    """Función principal del script de migración"""
    logger.info("🚀 Iniciando migración de conciliación RESICO")
    logger.info(f"🗄️  Base de datos: {settings.DATABASE_URL.split('@')[-1]}")  # Sin credenciales
    logger.info(f"📅 Fecha: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

    if not test_db_connection():
        logger.error("💥 No se pudo establecer conexión. Abortando.")
        sys.exit(1)

    init_db(crear_tablas=True)

    faltantes = tablas_faltantes()
    if faltantes:
        logger.error(f"💥 Tablas no creadas: {faltantes}")
        sys.exit(1)

    if not verificar_integridad():
        logger.error("💥 Error en verificación de integridad. Revisar.")
        sys.exit(1)

    logger.info("🎉 ¡Migración completada exitosamente!")


if __name__ == "__main__":
    main()

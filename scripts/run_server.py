#!/usr/bin/env python3
"""
Script para ejecutar el servidor de conciliación RESICO
"""

import sys
import os
import subprocess

# Agregar el directorio raíz al path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def run_server():
    """Ejecutar el servidor"""
    print("🚀 Iniciando servidor de conciliación RESICO...")
    print("📋 Información:")
    print("   - URL: http://localhost:8000")
    print("   - Documentación: http://localhost:8000/docs")
    print("   - Health check: http://localhost:8000/health")
    print()
    print("⏹️  Presiona Ctrl+C para detener")
    print("=" * 50)

    try:
        subprocess.run([
            sys.executable, "-m", "uvicorn",
            "app.core.main:app",
            "--reload",
            "--host", "0.0.0.0",
            "--port", os.getenv("PORT", "8000"),
        ])
    except KeyboardInterrupt:
        print("\n🛑 Servidor detenido")


if __name__ == "__main__":
    run_server()

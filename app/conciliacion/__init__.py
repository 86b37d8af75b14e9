"""
Módulo de Conciliación RESICO

Empata movimientos bancarios con CFDIs emitidos y recibidos y concilia
los totales del periodo.

Características principales:
- Scoring explicable por monto, fecha, RFC y descripción
- Asignación voraz 1:1 con bitácora de factores
- Conciliación por periodo (pendiente / completo / con diferencias)
"""

__version__ = "1.0.0"
__author__ = "Sistema de Conciliación Bancaria"

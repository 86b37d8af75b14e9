"""
Módulo de Cálculo Fiscal RESICO

Calcula el ISR mensual con la tabla escalonada de RESICO y el neto de
IVA (trasladado - acreditable - retenido) a partir de los totales
agregados de un periodo.
"""

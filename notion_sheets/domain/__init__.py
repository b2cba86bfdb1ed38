"""
Capa de dominio.
"""

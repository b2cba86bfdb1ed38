"""
Constantes compartidas.
"""

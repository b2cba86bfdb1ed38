"""
Configuracion y logging.
"""

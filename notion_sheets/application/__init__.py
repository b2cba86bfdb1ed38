"""
Capa de aplicacion: servicios, interfaces y casos de uso.
"""

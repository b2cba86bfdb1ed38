"""
Puertos (Protocols) hacia la grilla y los notificadores.
"""

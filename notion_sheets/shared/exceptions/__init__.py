"""
Jerarquia de excepciones.
"""

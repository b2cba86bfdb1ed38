"""
Adaptadores a servicios externos.
"""

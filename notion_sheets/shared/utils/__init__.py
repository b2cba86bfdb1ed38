"""
Helpers puros.
"""

"""
Clientes HTTP de terceros (Notion, Slack).
"""

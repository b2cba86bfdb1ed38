"""
Sync Notion -> Google Sheets con identidad de columnas estable.
"""

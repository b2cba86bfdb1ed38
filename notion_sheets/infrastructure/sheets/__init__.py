"""Adaptadores de Google Sheets (gspread)."""

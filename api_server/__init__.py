"""
QRIS Invoice API Server Package

This package provides a FastAPI server that stores QRIS invoices in a
Supabase table and serves them to the invoice generator frontend.
"""

__version__ = "1.0.0"
__author__ = "PayInvoicely Team"

"""
FastAPI application for Data Alchemist.

This package contains the REST API for uploading tabular data, mapping it
onto the client schema, validating, editing and exporting it.
"""

__version__ = "1.0.0"

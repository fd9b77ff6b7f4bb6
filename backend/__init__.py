"""Operator API (FastAPI) für das Revision Agent System."""

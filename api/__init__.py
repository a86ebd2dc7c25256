"""
Census HTTP API

FastAPI service exposing census roots, proofs and verification.

Usage:
    uvicorn api.app:app
"""

"""
Census HTTP

Shared HTTP transport for feed clients.
"""
from .client import HttpClient, HttpError, HttpResponse

__all__ = ["HttpClient", "HttpError", "HttpResponse"]

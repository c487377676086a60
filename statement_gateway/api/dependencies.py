"""Dependency injection for FastAPI endpoints"""

from fastapi import Request
from statement_gateway.infrastructure.clients.llm import TransactionExtractionClient


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_extraction_client() -> TransactionExtractionClient:
    """Provide the language model extraction client"""
    return TransactionExtractionClient()

"""
Router principal da API v1.

Agrega todas as rotas organizadas por domínio.
"""

from fastapi import APIRouter

from app.api.v1.endpoints import cadastros, health

api_router = APIRouter()

# Health check
api_router.include_router(health.router, prefix="/health", tags=["Health"])

# Cadastro de clientes e administradores
api_router.include_router(cadastros.router)

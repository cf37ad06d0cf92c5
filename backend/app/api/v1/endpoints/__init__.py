"""
Endpoints da API v1.

Módulos disponíveis:
- cadastros: Cadastro de clientes e administradores
- health: Health check
"""

"""
Módulo de segurança: hashing de senhas para cadastros com autenticação local.
"""

from passlib.context import CryptContext

from app.core.config import settings

# hex_sha256 mantém compatibilidade com os hashes já gravados em dados_usuario
pwd_context = CryptContext(
    schemes=["hex_sha256", "bcrypt"],
    default=settings.PASSWORD_HASH_SCHEME,
    deprecated="auto",
)


def get_password_hash(password: str) -> str:
    """Gera hash da senha com o esquema configurado."""
    return pwd_context.hash(password)

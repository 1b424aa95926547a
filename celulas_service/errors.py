"""Taxonomia de erros da API. Todos são HTTPException renderizadas como {"error": ...}."""

from typing import Dict, Optional

from fastapi import HTTPException, status


class AppError(HTTPException):
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Erro interno do servidor"

    def __init__(self, message: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        super().__init__(status_code=self.http_status, detail=message or self.default_message, headers=headers)


class ValidationError(AppError):
    http_status = status.HTTP_400_BAD_REQUEST
    default_message = "Dados inválidos"


class AuthError(AppError):
    http_status = status.HTTP_401_UNAUTHORIZED
    default_message = "Credenciais inválidas"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenError(AppError):
    http_status = status.HTTP_403_FORBIDDEN
    default_message = "Permissão insuficiente"


class NotFoundError(AppError):
    http_status = status.HTTP_404_NOT_FOUND
    default_message = "Recurso não encontrado"


class ConflictError(AppError):
    http_status = status.HTTP_409_CONFLICT
    default_message = "Conflito com dados existentes"


class InternalError(AppError):
    pass

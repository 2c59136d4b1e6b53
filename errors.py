"""
errors.py
Error types surfaced to the views as a single inline banner.
"""

from __future__ import annotations


class AppError(Exception):
    default_message = "Erro inesperado."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ConfigMissingError(AppError):
    default_message = (
        "Configuração do Supabase ausente. Defina SUPABASE_URL e SUPABASE_ANON_KEY."
    )


class AuthFailedError(AppError):
    default_message = "Erro ao autenticar."


class StoreError(AppError):
    default_message = "Erro ao acessar o banco de dados."

    def __init__(self, message: str | None = None, code: str | None = None):
        super().__init__(message)
        self.code = code


class RecordNotFoundError(StoreError):
    default_message = "Registro não encontrado."

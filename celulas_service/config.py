"""Configuração do serviço lida a partir de variáveis de ambiente (.env)."""

import os
import logging
from typing import List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

INSECURE_DEFAULT_SECRET = "chave_secreta_insegura_por_padrao_mudar_urgentemente"


class Settings(BaseModel):
    """Valores de configuração usados pela aplicação e pelo seed do admin."""

    database_url: str = "sqlite:///./celulas.db"
    jwt_secret_key: str = INSECURE_DEFAULT_SECRET
    jwt_algorithm: str = "HS256"
    # 7 dias, como no deploy original
    access_token_expire_minutes: int = Field(default=60 * 24 * 7, gt=0)
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    app_timezone: str = "UTC"

    admin_email: str = "admin@igreja.com"
    admin_password: str = "admin123"
    admin_name: str = "Admin"

    cors_origins: List[str] = ["http://localhost:3000"]
    log_level: str = "INFO"

    @field_validator("app_timezone")
    @classmethod
    def check_timezone(cls, value: str) -> str:
        # Um fuso inválido deve falhar no startup, não em cada requisição
        if value.upper() == "UTC":
            return "UTC"
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"APP_TIMEZONE inválido: {value}")
        return value


def load_settings() -> Settings:
    """Carrega o .env (se houver) e monta as Settings a partir do ambiente."""
    load_dotenv()

    secret = os.getenv("JWT_SECRET_KEY")
    if not secret:
        logger.warning("JWT_SECRET_KEY não está definida. Usando chave insegura padrão para desenvolvimento.")
        secret = INSECURE_DEFAULT_SECRET

    origins = os.getenv("CORS_ORIGINS", "http://localhost:3000")

    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./celulas.db"),
        jwt_secret_key=secret,
        access_token_expire_minutes=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24 * 7)),
        bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", 12)),
        app_timezone=os.getenv("APP_TIMEZONE", "UTC"),
        admin_email=os.getenv("ADMIN_EMAIL", "admin@igreja.com"),
        admin_password=os.getenv("ADMIN_PASSWORD", "admin123"),
        admin_name=os.getenv("ADMIN_NAME", "Admin"),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )

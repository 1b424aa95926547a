"""Conexão com o banco de dados (SQLite local, Postgres em produção) usando SQLAlchemy."""

import logging
from typing import Iterator

from fastapi import Request
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

# Base declarativa: todos os modelos (User, Cell, ...) herdam desta classe.
Base = declarative_base()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Engine + fábrica de sessões com ciclo de vida explícito.

    Criado uma vez no startup da aplicação (lifespan) e descartado no shutdown.
    Cada requisição recebe a sua própria Session através de `get_db`.
    """

    def __init__(self, url: str):
        self.url = url
        connect_args = {}
        if url.startswith("sqlite"):
            # As sessões são usadas pelas threads do threadpool do FastAPI
            connect_args["check_same_thread"] = False

        self.engine: Engine = create_engine(url, pool_pre_ping=True, connect_args=connect_args)
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine, "connect", _enable_sqlite_foreign_keys)

        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def create_tables(self) -> None:
        # Importa os modelos para registrá-los na metadata antes do create_all
        from celulas_service import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)
        logger.info("Tabelas do banco de dados verificadas/criadas.")

    def session(self) -> Session:
        return self.SessionLocal()

    def ping(self) -> bool:
        with self.engine.connect() as connection:
            connection.execute(text("SELECT 1"))
        return True

    def dispose(self) -> None:
        self.engine.dispose()
        logger.info("Pool de conexões do banco de dados encerrado.")


# --- Dependência do FastAPI ---
def get_db(request: Request) -> Iterator[Session]:
    """
    Fornece uma sessão por requisição e garante rollback/close ao final.
    Erros de banco seguem para o handler global (500 genérico).
    """
    database: Database = request.app.state.db
    db = database.session()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

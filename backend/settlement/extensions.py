# Overview: Flask extension instances for database, migrations and the read cache.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from sqlalchemy import event

from .cache import ReadCache

db = SQLAlchemy()
migrate = Migrate()
read_cache = ReadCache()


def configure_sqlite_engine(engine) -> None:
    """
    Let SQLAlchemy own BEGIN on pysqlite so SAVEPOINTs behave.

    The stock driver delays BEGIN until the first DML statement, which breaks
    nested transactions used by the best-effort barcode step.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

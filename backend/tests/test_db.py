import os

from sqlalchemy import create_engine, text

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import sitekeeper.models  # noqa: F401
from sitekeeper.core import db as db_module


def test_module_exposes_session_factory_and_base():
    assert not hasattr(db_module, "get_db")
    with db_module.SessionLocal() as session:
        assert session.autoflush is False
    assert "sites" in db_module.Base.metadata.tables


def test_sqlite_connections_enforce_foreign_keys(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path}/pragma_test.db", future=True)

    with engine.connect() as conn:
        assert conn.execute(text("PRAGMA foreign_keys")).scalar() == 1

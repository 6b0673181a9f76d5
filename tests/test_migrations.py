import importlib.util
from pathlib import Path

from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect

from tunedeck.database import Base

VERSIONS = Path(__file__).resolve().parent.parent / "alembic" / "versions"


def _load_revision():
    path = next(VERSIONS.glob("*_create_catalog_tables.py"))
    spec = importlib.util.spec_from_file_location("create_catalog_tables", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_migration_matches_models():
    revision = _load_revision()
    engine = create_engine("sqlite://", future=True)

    with engine.begin() as conn:
        with Operations.context(MigrationContext.configure(conn)):
            revision.upgrade()
        tables = set(inspect(conn).get_table_names())
        assert tables == set(Base.metadata.tables)
        for name, table in Base.metadata.tables.items():
            columns = {column["name"] for column in inspect(conn).get_columns(name)}
            assert columns == set(table.columns.keys())

        with Operations.context(MigrationContext.configure(conn)):
            revision.downgrade()
        assert inspect(conn).get_table_names() == []

from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from investtrack.db.base import Base
import investtrack.models  # noqa: F401


def test_initial_migration_matches_models(tmp_path: Path) -> None:
    url = f"sqlite+pysqlite:///{tmp_path / 'migrated.db'}"
    config = Config()
    config.set_main_option("script_location", str(Path(__file__).resolve().parents[1] / "alembic"))
    config.set_main_option("sqlalchemy.url", url)
    command.upgrade(config, "head")

    engine = create_engine(url, future=True)
    inspector = inspect(engine)
    for table in Base.metadata.sorted_tables:
        migrated = {column["name"] for column in inspector.get_columns(table.name)}
        assert migrated == set(table.columns.keys()), table.name
    unique_indexes = {index["name"] for index in inspector.get_indexes("snapshots") if index["unique"]}
    assert unique_indexes == {"ix_snapshots_month"}
    engine.dispose()

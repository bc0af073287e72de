# ABOUTME: Ordered schema migrations for the links database
# ABOUTME: Applied once each at store startup, tracked in the database_version table

from dataclasses import dataclass

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection

from linkdump.utils.logging import get_logger

logger = get_logger(__name__)

VERSION_TABLE = """
create table if not exists "database_version" (
  id integer primary key,
  version integer not null
)
"""


@dataclass(frozen=True, slots=True)
class Migration:
    """One schema upgrade: a version number and the statements that reach it."""

    version: int
    name: str
    statements: tuple[str, ...]


MIGRATIONS: list[Migration] = [
    Migration(
        version=1,
        name="initial",
        statements=(
            """
            create table if not exists "links" (
              id integer primary key asc autoincrement,
              url text not null unique,
              title text default(null),
              tags text not null default(''),
              via text default(null),
              notes text default(null),
              found_at integer(8) default(null),
              read_at integer(8) default(null),
              published_at integer(8) default(null),
              from_filename text default(null)
            )
            """,
        ),
    ),
    Migration(
        version=2,
        name="enrichment",
        statements=(
            'alter table "links" add column image text default(null)',
            'alter table "links" add column src blob default(null)',
            'alter table "links" add column meta text default(null)',
            'alter table "links" add column last_fetched integer(8) default(null)',
            'alter table "links" add column last_processed integer(8) default(null)',
            'alter table "links" add column http_headers blob default(null)',
        ),
    ),
    Migration(
        version=3,
        name="hidden",
        statements=('alter table "links" add column hidden integer not null default(0)',),
    ),
]


async def current_version(conn: AsyncConnection) -> int:
    await conn.execute(text(VERSION_TABLE))
    result = await conn.execute(text('select version from "database_version" where id = 0'))
    return result.scalar_one_or_none() or 0


async def apply_migrations(conn: AsyncConnection, migrations: list[Migration] = MIGRATIONS) -> int:
    """Run every migration newer than the recorded version.

    Args:
        conn: Connection inside a transaction
        migrations: Migrations to consider, in any order

    Returns:
        Number of migrations applied
    """
    version = await current_version(conn)
    pending = sorted((m for m in migrations if m.version > version), key=lambda m: m.version)

    for migration in pending:
        logger.info("Applying migration", version=migration.version, name=migration.name)
        for statement in migration.statements:
            await conn.execute(text(statement))

    if pending:
        await conn.execute(
            text(
                'insert into "database_version" (id, version) values (0, :version) '
                "on conflict(id) do update set version = excluded.version"
            ),
            {"version": pending[-1].version},
        )

    return len(pending)

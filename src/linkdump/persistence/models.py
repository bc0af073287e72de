# ABOUTME: SQLModel table mapping for persisted links
# ABOUTME: Column encodings match the links table created by the migration list

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Text
from sqlmodel import Column, Field, SQLModel

from linkdump.core.models import Link, Via
from linkdump.persistence.json_types import EpochMillis, JsonText, ZstdBytes, ZstdJson


class LinkRow(SQLModel, table=True):
    """One row of the ``links`` table."""

    __tablename__ = "links"  # type: ignore[assignment]

    id: int | None = Field(default=None, primary_key=True, description="Row identifier")
    url: str = Field(sa_column=Column(Text, unique=True, nullable=False), description="Link identity")
    title: str | None = Field(default=None, description="Display title")
    tags: list[str] = Field(
        default_factory=list,
        sa_column=Column(JsonText(list[str]), nullable=False),
        description="Sorted JSON list of tags",
    )
    via: Via | None = Field(
        default=None,
        sa_column=Column(JsonText(Via, none_as_null=False)),
        description="Externally tagged provenance, JSON null when absent",
    )
    notes: str | None = Field(default=None, description="Notes from the link dump")
    found_at: datetime | None = Field(default=None, sa_column=Column(EpochMillis()), description="First seen")
    read_at: datetime | None = Field(default=None, sa_column=Column(EpochMillis()), description="Marked read")
    published_at: datetime | None = Field(default=None, sa_column=Column(EpochMillis()), description="Authored")
    from_filename: str | None = Field(default=None, description="Importing document")
    image: str | None = Field(default=None, description="Representative image URL")
    src: bytes | None = Field(default=None, sa_column=Column(ZstdBytes()), description="Compressed fetched body")
    meta: dict[str, list[str]] | None = Field(
        default=None,
        sa_column=Column(JsonText(dict[str, list[str]])),
        description="Meta tag name to values",
    )
    last_fetched: datetime | None = Field(default=None, sa_column=Column(EpochMillis()), description="Fetch gate")
    last_processed: datetime | None = Field(
        default=None, sa_column=Column(EpochMillis()), description="Extraction gate"
    )
    http_headers: dict[str, list[str]] | None = Field(
        default=None,
        sa_column=Column(ZstdJson(dict[str, list[str]])),
        description="Compressed response headers",
    )
    hidden: bool = Field(
        default=False,
        sa_column=Column(Boolean(create_constraint=False), nullable=False, default=False),
        description="Visibility flag stored as 0/1",
    )

    @classmethod
    def from_link(cls, link: Link) -> LinkRow:
        return cls(
            url=link.url,
            title=link.title,
            tags=sorted(link.tags),
            via=link.via,
            notes=link.notes,
            found_at=link.found_at,
            read_at=link.read_at,
            published_at=link.published_at,
            from_filename=link.from_filename,
            image=link.image,
            src=link.src,
            meta=link.meta,
            last_fetched=link.last_fetched,
            last_processed=link.last_processed,
            http_headers=link.http_headers,
            hidden=link.hidden,
        )


LINK_COLUMNS = [name for name in LinkRow.__table__.columns.keys() if name != "id"]  # type: ignore[attr-defined]


def link_from_mapping(row: dict) -> Link:
    """Build a Link from a row mapping; columns absent from the mapping stay unset."""
    data = {name: row[name] for name in LINK_COLUMNS if name in row}
    data["tags"] = set(data.get("tags") or [])
    data["hidden"] = bool(data.get("hidden"))
    return Link(**data)

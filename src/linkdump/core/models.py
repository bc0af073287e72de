# ABOUTME: Domain models for link records and the documents they are imported from
# ABOUTME: Link, Via, LinkSource and content classification shared by every layer

from __future__ import annotations

import re
from datetime import UTC, date, datetime, time
from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_serializer, model_validator

FILENAME_DATE_PATTERN = re.compile(r"(\d{8})")


def utcnow() -> datetime:
    """Returns the current UTC timestamp."""

    return datetime.now(UTC)


def local_midnight(day: date) -> datetime:
    """Midnight of ``day`` in the local timezone, expressed in UTC."""
    return datetime.combine(day, time()).astimezone().astimezone(UTC)


def to_epoch_millis(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return int(value.timestamp() * 1000)


def from_epoch_millis(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, UTC)


class ContentClass(str, Enum):
    """Coarse classification of a fetched response body."""

    HTML = "html"
    PDF = "pdf"
    PLAINTEXT = "plaintext"
    OTHER = "other"

    @classmethod
    def from_content_type(cls, content_type: str | None) -> ContentClass:
        if not content_type:
            return cls.OTHER

        mime = content_type.split(";", 1)[0].strip().lower()
        if mime in ("text/html", "application/xhtml+xml"):
            return cls.HTML
        if mime == "application/pdf":
            return cls.PDF
        if mime == "text/plain":
            return cls.PLAINTEXT
        return cls.OTHER


ViaKind = Literal["Friend", "Link", "Freeform"]


class Via(BaseModel):
    """Where a link came from: a person, another link, or free text.

    Serialized externally tagged, e.g. ``{"Friend": "@garybusey"}``.
    """

    model_config = ConfigDict(frozen=True)

    kind: ViaKind
    value: str

    @model_validator(mode="before")
    @classmethod
    def _from_tagged(cls, data: Any) -> Any:
        if isinstance(data, dict) and len(data) == 1:
            ((kind, value),) = data.items()
            if kind in ("Friend", "Link", "Freeform"):
                return {"kind": kind, "value": value}
        return data

    @model_serializer
    def _to_tagged(self) -> dict[str, str]:
        return {self.kind: self.value}

    @classmethod
    def parse(cls, text: str) -> Via:
        """Classify free text from a ``via:`` metadata entry."""
        text = text.strip()
        if text.startswith("@"):
            return cls(kind="Friend", value=text)

        if text.split(":", 1)[0] in ("http", "https"):
            return cls(kind="Link", value=text)

        return cls(kind="Freeform", value=text)

    def __str__(self) -> str:
        label = {"Friend": "friend", "Link": "link", "Freeform": "text"}[self.kind]
        return f"{label}, {self.value}"


class LinkSource(BaseModel):
    """One parsed input document plus its provenance timestamps. Never persisted."""

    model_config = ConfigDict(frozen=True)

    content: str
    filename: str | None = None
    created: datetime | None = None
    modified: datetime | None = None

    @classmethod
    def from_path(cls, path: Path | str) -> LinkSource:
        """Read a link dump from disk.

        A ``YYYYMMDD-`` filename prefix (e.g. ``20220115-link-dump.md``) sets
        ``created`` to local midnight of that day; the file's mtime sets ``modified``.
        """
        path = Path(path)
        content = path.read_text(encoding="utf-8")

        created = None
        match = FILENAME_DATE_PATTERN.fullmatch(path.name.split("-", 1)[0])
        if match:
            try:
                created = local_midnight(datetime.strptime(match.group(1), "%Y%m%d").date())
            except ValueError:
                created = None

        modified = datetime.fromtimestamp(path.stat().st_mtime, UTC)
        return cls(content=content, filename=str(path), created=created, modified=modified)

    @classmethod
    def from_text(cls, text: str) -> LinkSource:
        return cls(content=text, created=utcnow())


class Link(BaseModel):
    """The persisted record for one URL and its accumulated enrichment state.

    ``last_fetched`` and ``last_processed`` are idempotency gates: once set,
    the fetch and extraction stages skip the link until ``clear_gates`` runs.
    """

    url: str = Field(description="Identity of the record, fragment stripped")
    title: str | None = Field(default=None, description="Display title")
    via: Via | None = Field(default=None, description="Provenance of the link")
    tags: set[str] = Field(default_factory=set, description="Non-empty tag strings")
    notes: str | None = Field(default=None, description="Newline-joined notes from the link dump")

    found_at: datetime | None = Field(default=None, description="When the link was first seen")
    read_at: datetime | None = Field(default=None, description="When the link was marked read")
    published_at: datetime | None = Field(default=None, description="When the document was authored")

    from_filename: str | None = Field(default=None, description="Document the link was imported from")
    image: str | None = Field(default=None, description="Representative image URL")
    meta: dict[str, list[str]] | None = Field(default=None, description="Raw <meta> name/content pairs")
    src: bytes | None = Field(default=None, description="Raw fetched body", repr=False)
    extracted_text: str | None = Field(default=None, description="Plain-text rendering of src", repr=False)

    last_fetched: datetime | None = Field(default=None, description="Fetch gate")
    last_processed: datetime | None = Field(default=None, description="Extraction gate")
    http_headers: dict[str, list[str]] | None = Field(default=None, description="Response headers, lowercased")
    hidden: bool = Field(default=False, description="User-controlled visibility flag")

    @property
    def content_type(self) -> str | None:
        if not self.http_headers:
            return None
        values = self.http_headers.get("content-type")
        return values[-1] if values else None

    @property
    def content_class(self) -> ContentClass:
        return ContentClass.from_content_type(self.content_type)

    @property
    def is_html(self) -> bool:
        return self.content_class is ContentClass.HTML

    @property
    def is_pdf(self) -> bool:
        return self.content_class is ContentClass.PDF

    @property
    def is_plaintext(self) -> bool:
        return self.content_class is ContentClass.PLAINTEXT

    def clear_gates(self) -> Link:
        """Reset both idempotency gates so the next pipeline run repeats every stage."""
        self.last_fetched = None
        self.last_processed = None
        return self

    def add_tags(self, tags: list[str] | set[str]) -> None:
        self.tags.update(tag for tag in (t.strip() for t in tags) if tag)

    def slug(self) -> str:
        """Reference-style label used by ``show --mode attributions``."""
        base = self.title or self.url
        return re.sub(r"[^a-z0-9]+", "-", base.lower()).strip("-")

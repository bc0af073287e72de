# ABOUTME: HTML extraction stage resolving title, publish date and image by weighted candidates
# ABOUTME: Records every <meta> pair and renders the document to plain text with BeautifulSoup

import re
from dataclasses import dataclass
from datetime import UTC, date, datetime

from bs4 import BeautifulSoup, Tag

from linkdump.core.models import Link, local_midnight, utcnow
from linkdump.pipeline.base import Stage, StageKind
from linkdump.utils.logging import get_logger, log_stage

TITLE_ELEMENT_WEIGHT = 2
TIME_ELEMENT_WEIGHT = 2

TITLE_WEIGHTS = {
    "title": 5,
    "og:title": 4,
    "twitter:title": 3,
    "twitter:text:title": 0,
}

PUBLISHED_WEIGHTS = {
    "date.created": 5,
    "date": 4,
    "article:published_time": 3,
    "DC.Date": 0,
}

IMAGE_WEIGHTS = {
    "og:image": 5,
    "og:image:url": 5,
    "twitter:image": 4,
    "twitter:image:src": 4,
}

DATE_PREFIX = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
DROPPED_ELEMENTS = ["script", "style", "noscript", "template"]

logger = get_logger(__name__)


@dataclass(slots=True)
class WeightedValue[T]:
    """Highest-weight candidate seen so far; ties keep the first one."""

    weight: int = -1
    value: T | None = None

    def offer(self, weight: int, value: T | None) -> None:
        if value is None or value == "":
            return
        if self.value is None or weight > self.weight:
            self.weight = weight
            self.value = value


@dataclass(slots=True)
class HtmlMetadata:
    title: WeightedValue[str]
    published_at: WeightedValue[datetime]
    image: WeightedValue[str]
    meta: dict[str, list[str]]


def parse_published(value: str) -> datetime | None:
    """Parse a publish date; bare dates mean local midnight."""
    value = value.strip()
    if not value:
        return None

    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        match = DATE_PREFIX.match(value)
        if not match:
            return None
        try:
            return local_midnight(date(*(int(part) for part in match.groups())))
        except ValueError:
            return None

    if len(value) <= 10:
        return local_midnight(parsed.date())
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed.astimezone(UTC)


def _inside_svg(element: Tag) -> bool:
    return any(parent.name == "svg" for parent in element.parents)


def scan_document(soup: BeautifulSoup) -> HtmlMetadata:
    """Single pass over <title>, <meta> and <time> elements in document order."""
    metadata = HtmlMetadata(WeightedValue(), WeightedValue(), WeightedValue(), {})

    for element in soup.find_all(["title", "meta", "time"]):
        if element.name == "title":
            if not _inside_svg(element):
                metadata.title.offer(TITLE_ELEMENT_WEIGHT, element.get_text().strip())

        elif element.name == "time":
            datetime_attr = element.get("datetime")
            if datetime_attr:
                metadata.published_at.offer(TIME_ELEMENT_WEIGHT, parse_published(str(datetime_attr)))

        else:
            key = element.get("name") or element.get("property") or element.get("itemprop")
            content = element.get("content")
            if not key or content is None:
                continue

            key, content = str(key), str(content)
            metadata.meta.setdefault(key, []).append(content)

            if key in TITLE_WEIGHTS:
                metadata.title.offer(TITLE_WEIGHTS[key], content.strip())
            elif key in PUBLISHED_WEIGHTS:
                metadata.published_at.offer(PUBLISHED_WEIGHTS[key], parse_published(content))
            elif key in IMAGE_WEIGHTS:
                metadata.image.offer(IMAGE_WEIGHTS[key], content.strip())

    return metadata


def html_to_text(soup: BeautifulSoup) -> str:
    """Plain-text rendering with scripts and styles removed, one block per line."""
    for element in soup(DROPPED_ELEMENTS):
        element.decompose()

    text = soup.get_text(separator="\n")
    lines = (re.sub(r"[ \t\r\f\v]+", " ", line).strip() for line in text.splitlines())
    return "\n".join(line for line in lines if line)


class HtmlExtractStage(Stage):
    """Extract metadata and text from fetched HTML once per link."""

    kind = StageKind.EXTRACT
    name = "html"

    @log_stage("html")
    async def process(self, link: Link) -> Link:
        if link.last_processed is not None or link.src is None or not link.is_html:
            return link

        link.last_processed = utcnow()

        soup = BeautifulSoup(link.src.decode("utf-8", errors="replace"), "html.parser")
        metadata = scan_document(soup)

        link.title = link.title or metadata.title.value
        link.published_at = link.published_at or metadata.published_at.value
        link.image = link.image or metadata.image.value
        if link.meta is None:
            link.meta = metadata.meta
        link.extracted_text = html_to_text(soup)

        logger.debug(
            "Extracted html metadata",
            url=link.url,
            title=link.title,
            meta_keys=len(metadata.meta),
            text_length=len(link.extracted_text),
        )
        return link

# ABOUTME: Reconciles a freshly extracted link draft with its stored counterpart
# ABOUTME: User-authored fields come from the draft, enrichment state from the store

from datetime import datetime

from linkdump.core.models import Link, LinkSource, utcnow


def _has_notes(link: Link) -> bool:
    return bool(link.notes and link.notes.strip())


def reconcile(draft: Link, stored: Link | None, source: LinkSource, now: datetime | None = None) -> Link:
    """Produce the link to hand to the enrichment pipeline.

    Without a stored record the draft is stamped with the document's
    timestamps. With one, ``title``/``notes``/``tags``/``via`` come from the
    draft while every enrichment field is carried over from the store, so a
    re-import never discards pipeline work.

    Notes are the read marker: re-importing a link without notes clears
    ``read_at`` even when the stored record had one.
    """
    source_timestamp = source.modified or source.created

    if stored is None:
        link = draft.model_copy(deep=True)
        link.found_at = source_timestamp
        link.from_filename = source.filename
        if _has_notes(draft):
            link.read_at = source_timestamp
        return link

    link = stored.model_copy(deep=True)
    link.found_at = stored.found_at or draft.found_at or source_timestamp
    link.from_filename = stored.from_filename or draft.from_filename or source.filename

    if _has_notes(draft):
        link.read_at = stored.read_at or now or utcnow()
    else:
        link.read_at = None

    link.title = draft.title or stored.title
    link.notes = draft.notes
    link.tags = set(draft.tags)
    link.via = draft.via
    return link

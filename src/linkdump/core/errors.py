# ABOUTME: Exception hierarchy shared by extraction, pipeline and persistence layers
# ABOUTME: Every error raised by linkdump derives from LinkdumpError


class LinkdumpError(Exception):
    """Base class for all linkdump failures."""

    pass


class ExtractionError(LinkdumpError):
    """Raised when a single list item cannot be turned into a link."""

    pass


class FetchError(LinkdumpError):
    """Raised when a fetch fails for a reason other than connectivity."""

    def __init__(self, url: str, message: str):
        super().__init__(f"{url}: {message}")
        self.url = url


class StoreError(LinkdumpError):
    """Raised when the link store rejects a read or write."""

    pass


class PipelineOrderError(LinkdumpError):
    """Raised when stages are composed out of fetch, extract, cache order."""

    pass

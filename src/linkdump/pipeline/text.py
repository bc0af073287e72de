# ABOUTME: Plaintext extraction stage copying UTF-8 bodies into extracted_text
# ABOUTME: Invalid UTF-8 yields no extracted text, never an error

from linkdump.core.models import Link, utcnow
from linkdump.pipeline.base import Stage, StageKind
from linkdump.utils.logging import get_logger, log_stage


class PlaintextStage(Stage):
    kind = StageKind.EXTRACT
    name = "plaintext"

    def __init__(self):
        self.logger = get_logger(__name__)

    @log_stage("plaintext")
    async def process(self, link: Link) -> Link:
        if link.last_processed is not None or link.src is None or not link.is_plaintext:
            return link

        link.last_processed = utcnow()
        try:
            link.extracted_text = link.src.decode("utf-8")
        except UnicodeDecodeError as e:
            self.logger.info("Plaintext body is not valid UTF-8", url=link.url, position=e.start)
            link.extracted_text = None
        return link

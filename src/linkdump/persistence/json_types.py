# ABOUTME: SQLAlchemy column types for the links table's on-disk encodings
# ABOUTME: JSON text, zstd-compressed JSON/bytes and epoch-millisecond timestamps

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

import zstandard
from pydantic import TypeAdapter
from sqlalchemy import BigInteger, LargeBinary, Text, TypeDecorator
from sqlalchemy.engine import Dialect

from linkdump.core.models import from_epoch_millis, to_epoch_millis

ZSTD_LEVEL = 3

# Raised while a stored column is decoded back into a Link.
DECODE_ERRORS = (zstandard.ZstdError, ValueError, OverflowError)


def zstd_compress(data: bytes) -> bytes:
    return zstandard.ZstdCompressor(level=ZSTD_LEVEL).compress(data)


def zstd_decompress(data: bytes) -> bytes:
    # Frames written by streaming encoders omit the content size, so use a decompressobj.
    return zstandard.ZstdDecompressor().decompressobj().decompress(data)


class JsonText(TypeDecorator[Any]):
    """
    A SQLAlchemy TypeDecorator that stores a value as compact JSON text, using
    Pydantic's TypeAdapter for serialization and validation. Empty strings and
    JSON ``null`` read back as ``None``.

    With ``none_as_null=False`` a Python ``None`` is written as the JSON text
    ``null`` instead of SQL NULL.
    """

    impl = Text()
    cache_ok = True

    def __init__(self, pydantic_type: Any, none_as_null: bool = True) -> None:
        super().__init__()
        self.pydantic_type = pydantic_type
        self.none_as_null = none_as_null
        self.should_evaluate_none = not none_as_null
        self.type_adapter = TypeAdapter(Optional[pydantic_type])

    def bind_processor(self, dialect: Dialect) -> Any:
        def process(value: Any) -> str | None:
            if value is None and self.none_as_null:
                return None
            return self.type_adapter.dump_json(value).decode()

        return process

    def result_processor(self, dialect: Dialect, coltype: Any) -> Any:
        def process(value: Any) -> Any:
            return self.type_adapter.validate_json(value) if value else None

        return process


class ZstdJson(TypeDecorator[Any]):
    """JSON serialized with a TypeAdapter, then zstd-compressed into a blob."""

    impl = LargeBinary()
    cache_ok = True

    def __init__(self, pydantic_type: Any) -> None:
        super().__init__()
        self.pydantic_type = pydantic_type
        self.type_adapter = TypeAdapter(Optional[pydantic_type])

    def bind_processor(self, dialect: Dialect) -> Any:
        def process(value: Any) -> bytes | None:
            return zstd_compress(self.type_adapter.dump_json(value)) if value is not None else None

        return process

    def result_processor(self, dialect: Dialect, coltype: Any) -> Any:
        def process(value: Any) -> Any:
            return self.type_adapter.validate_json(zstd_decompress(value)) if value else None

        return process


class ZstdBytes(TypeDecorator[bytes]):
    """Raw bytes stored zstd-compressed."""

    impl = LargeBinary()
    cache_ok = True

    def bind_processor(self, dialect: Dialect) -> Any:
        def process(value: bytes | None) -> bytes | None:
            return zstd_compress(value) if value is not None else None

        return process

    def result_processor(self, dialect: Dialect, coltype: Any) -> Any:
        def process(value: bytes | None) -> bytes | None:
            return zstd_decompress(value) if value is not None else None

        return process


class EpochMillis(TypeDecorator[datetime]):
    """Timezone-aware UTC datetimes stored as integer epoch milliseconds."""

    impl = BigInteger()
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> int | None:
        return to_epoch_millis(value) if value is not None else None

    def process_result_value(self, value: int | None, dialect: Dialect) -> datetime | None:
        return from_epoch_millis(value) if value is not None else None

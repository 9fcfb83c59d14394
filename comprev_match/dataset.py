from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Optional

Record = dict[str, Any]


@dataclass
class Dataset:
    """Ordered records sharing one header list, as read from a sheet."""

    headers: list[str] = field(default_factory=list)
    records: list[Record] = field(default_factory=list)
    sheet_name: Optional[str] = None
    source: Optional[str] = None

    @classmethod
    def from_records(cls, records: Iterable[Record], **kwargs: Any) -> "Dataset":
        records = [dict(record) for record in records]
        headers = list(records[0].keys()) if records else []
        return cls(headers=headers, records=records, **kwargs)

    def subset(self, records: Iterable[Record]) -> "Dataset":
        return Dataset(
            headers=list(self.headers),
            records=list(records),
            sheet_name=self.sheet_name,
            source=self.source,
        )

    def column(self, name: str) -> list[Any]:
        return [record.get(name, "") for record in self.records]

    def rows(self) -> list[list[Any]]:
        return [[record.get(header, "") for header in self.headers] for record in self.records]

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self.records)

"""Symbol table of parsed class records."""

import logging
from typing import Iterable, Iterator

from .models import ClassRecord, ClassReference

logger = logging.getLogger(__name__)


class SymbolTable:
    """Ordered mapping of fully-qualified class names to records.

    One table belongs to one parse run. Insertion order follows parse order;
    a later record with the same name replaces the earlier one in place.
    """

    def __init__(self) -> None:
        self._records: dict[str, ClassRecord] = {}

    @classmethod
    def build(cls, records: Iterable[ClassRecord]) -> "SymbolTable":
        """Build a table from extracted records.

        Args:
            records: Records in parse order.

        Returns:
            New symbol table.
        """
        table = cls()
        for record in records:
            table.add(record)
        return table

    def add(self, record: ClassRecord) -> None:
        if record.class_name in self._records:
            logger.warning(
                f"Duplicate definition of {record.class_name} in {record.path}, "
                f"replacing {self._records[record.class_name].path}"
            )
        self._records[record.class_name] = record

    def get(self, class_name: str) -> ClassRecord | None:
        return self._records.get(class_name)

    def resolve(self, reference: ClassReference | None) -> ClassRecord | None:
        """Look up the record a reference points at, if it was parsed."""
        if reference is None:
            return None
        return self._records.get(reference.class_name)

    def names(self) -> list[str]:
        return list(self._records)

    def records(self) -> list[ClassRecord]:
        return list(self._records.values())

    def __contains__(self, class_name: object) -> bool:
        return class_name in self._records

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __getitem__(self, class_name: str) -> ClassRecord:
        return self._records[class_name]

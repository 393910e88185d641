"""Base transformer class for CSV row normalization."""
from abc import ABC, abstractmethod
from typing import Any, Dict, Hashable, List, Mapping, Optional, Type
import logging

from pydantic import BaseModel, ValidationError

from tr_dashboard.errors import InputError

from .normalize import get_cell_value

logger = logging.getLogger(__name__)


class BaseTransformer(ABC):
    """
    Abstract base class for the per-kind record transformers.

    Subclasses map one raw CSV row to one record dict (or None to drop the
    row) and define the composite natural key used for deduplication.
    """

    schema: Type[BaseModel]
    aliases: Dict[str, List[str]]

    def __init__(self, name: str):
        """
        Initialize the transformer.

        Args:
            name: Name of the transformer (for logging)
        """
        self.name = name
        self.logger = logging.getLogger(f'{__name__}.{name}')
        self.dropped_count = 0

    @abstractmethod
    def _transform_record(self, row: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        """Map a raw row to a record payload, or None when it has no serial number."""
        pass

    @abstractmethod
    def key(self, record: Dict[str, Any]) -> Hashable:
        """Composite natural key of a transformed record."""
        pass

    def transform(self, data: List[Mapping[str, Any]]) -> List[Dict[str, Any]]:
        """
        Transform raw rows into validated record payloads.

        Rows without a serial number are dropped silently; rows failing
        schema validation are logged and skipped.

        Args:
            data: Raw parsed CSV rows

        Returns:
            Record payloads in input order (duplicates retained)
        """
        transformed = []
        self.dropped_count = 0
        for row in data:
            payload = self._transform_record(row)
            if payload is None:
                self.dropped_count += 1
                continue
            try:
                record = self.schema(**payload)
            except ValidationError as e:
                self.dropped_count += 1
                self.logger.error(f'Invalid {self.name} row {payload.get("serial_number")}: {e}')
                continue
            transformed.append(record.model_dump())

        self.logger.info(
            f'Transformed {len(transformed)} {self.name} records '
            f'({self.dropped_count} rows dropped)'
        )
        return transformed

    def cell(self, row: Mapping[str, Any], field: str) -> Optional[Any]:
        """Look up a canonical field through this transformer's alias table."""
        return get_cell_value(row, self.aliases[field])


    def require_key_column(self, headers: List[str]) -> None:
        """
        Check that the file carries a serial number column.

        A header matches an alias exactly or after trimming whitespace.

        Args:
            headers: Header labels of the parsed CSV

        Raises:
            InputError: If no serial number alias is among the headers
        """
        aliases = self.aliases['serial_number']
        present = {h.strip() for h in headers if isinstance(h, str)}
        if not any(alias in present for alias in aliases):
            raise InputError(f'CSV 缺少关键列: 三包流水号 (可接受的表头: {", ".join(aliases)})')

"""Extractor for uploaded CSV exports."""
import csv
import io
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from tr_dashboard.errors import InputError

from .base_extractor import BaseExtractor

CsvSource = Union[str, Path, bytes]


def detect_delimiter(content: bytes) -> str:
    """Tab when the header line has more tabs than commas, else comma."""
    header = content.split(b'\n', 1)[0]
    return '\t' if header.count(b'\t') > header.count(b',') else ','


class CsvExtractor(BaseExtractor):
    """
    Parse a CSV export into header -> text rows.

    Every cell is read as text (no NaN, no numeric inference) so that the
    normalizer sees exactly what the export contains. Undecodable bytes are
    replaced rather than rejected; the replacement characters then show up
    in the headers and are reported as a garbled-header warning.
    """

    def __init__(self):
        super().__init__('csv')
        self.headers: List[str] = []

    def extract(
        self,
        source: CsvSource,
        delimiter: Optional[str] = None,
        source_name: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Read all rows of a CSV file.

        Args:
            source: File path or raw file bytes
            delimiter: Field delimiter; None detects comma vs tab
            source_name: Name used in log and error messages

        Returns:
            List of row dictionaries (header row required)

        Raises:
            InputError: If the file is missing, empty or cannot be parsed
        """
        if isinstance(source, bytes):
            name = source_name or '<upload>'
            content = source
        else:
            name = source_name or str(source)
            try:
                content = Path(source).read_bytes()
            except FileNotFoundError as e:
                raise InputError(f'CSV 文件不存在: {name}') from e

        if not content.strip():
            raise InputError(f'CSV 文件为空: {name}')

        try:
            df = pd.read_csv(
                io.BytesIO(content),
                sep=delimiter or detect_delimiter(content),
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                encoding='utf-8-sig',
                encoding_errors='replace',
            )
        except pd.errors.EmptyDataError as e:
            raise InputError(f'CSV 文件为空: {name}') from e
        except (pd.errors.ParserError, csv.Error, UnicodeDecodeError) as e:
            raise InputError(f'CSV 解析失败: {name}: {e}') from e

        self.headers = [str(c) for c in df.columns]
        rows = [
            row for row in df.to_dict('records')
            if any(str(v).strip() for v in row.values())
        ]
        self.log_extraction(len(rows), name)
        return rows

    def visible_headers(self) -> List[str]:
        """Headers of the last file, without blanks and pandas 'Unnamed: N' fillers."""
        return [
            h for h in self.headers
            if h.strip() and not h.startswith('Unnamed:')
        ]

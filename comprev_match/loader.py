"""
loader.py: spreadsheet loader for comprev-match

Supports: .xlsx .xlsm .xls .ods .csv .tsv .txt

Public API:
    loaded  = load_file("path/to/base.xlsx")
    dataset = loaded["dataset"]

    loaded  = load_upload("base.xlsx", raw_bytes)   # in-memory uploads

Result dict keys:
    dataset          : Dataset (headers in sheet order, records with "" for blanks)
    detected_format  : "xlsx", "csv", etc.
    detected_encoding: encoding name for text files; None for workbooks
    sheet_name       : sheet that was read; None for text files
    sheet_names      : all sheet names in the workbook; None for text files
    original_rows    : row count including header and blank rows
    original_columns : column count
    warnings         : list of warning strings

Only the first sheet of a workbook is ever read.
"""

from __future__ import annotations

import csv
import io
from collections import Counter
from pathlib import Path
from typing import Any, Optional, Union

import pandas as pd

from comprev_match.dataset import Dataset
from comprev_match.log import get_logger

logger = get_logger(__name__)

# ── Format groups ──────────────────────────────────────────────────────────────
TEXT_FORMATS     = {".csv", ".tsv", ".txt"}
EXCEL_FORMATS    = {".xlsx", ".xlsm", ".xls"}
ODS_FORMATS      = {".ods"}
ALL_FORMATS      = TEXT_FORMATS | EXCEL_FORMATS | ODS_FORMATS

Source = Union[Path, io.BytesIO]


# ══════════════════════════════════════════════════════════════════════════════
# ENCODING DETECTION
# ══════════════════════════════════════════════════════════════════════════════

def _detect_encoding(raw: bytes) -> str:
    """Best-guess encoding via chardet; "utf-8" when chardet has no opinion."""
    import chardet

    detected = chardet.detect(raw).get("encoding")
    return detected or "utf-8"


def _read_text_safely(raw: bytes, preferred_encoding: str) -> str:
    """
    Decode raw bytes line-by-line.

    Strategy per line:
      1. Try UTF-8
      2. Try preferred_encoding (chardet result)
      3. Try latin-1
      4. CP1252 with replace (never crashes)

    Government exports often mix UTF-8 and Windows-1252 rows in one file.
    Embedded null bytes are stripped.
    """
    decoded_lines: list[str] = []
    for raw_line in raw.split(b"\n"):
        decoded: Optional[str] = None
        for enc in ("utf-8", preferred_encoding, "latin-1"):
            if not enc:
                continue
            try:
                decoded = raw_line.decode(enc)
                break
            except (LookupError, UnicodeDecodeError):
                continue
        if decoded is None:
            decoded = raw_line.decode("cp1252", errors="replace")
        decoded_lines.append(decoded.replace("\x00", ""))
    return "\n".join(decoded_lines).lstrip("\ufeff")


# ══════════════════════════════════════════════════════════════════════════════
# DELIMITER DETECTION
# ══════════════════════════════════════════════════════════════════════════════

def _detect_delimiter(text: str) -> str:
    """
    Infer the delimiter from sample lines.

    Uses csv.Sniffer first; falls back to the candidate that yields the most
    consistent column count. Brazilian exports are usually ";"-separated.
    """
    sample_lines = [line for line in text.splitlines() if line.strip()][:50]
    sample = "\n".join(sample_lines[:25])

    if sample:
        try:
            return csv.Sniffer().sniff(sample, delimiters=";,\t|").delimiter
        except csv.Error:
            pass

    best_delim = ","
    best_score = float("-inf")
    for delim in (";", ",", "\t", "|"):
        rows = [
            row
            for row in csv.reader(io.StringIO("\n".join(sample_lines)), delimiter=delim)
            if any(cell.strip() for cell in row)
        ]
        if not rows:
            continue
        widths = Counter(len(row) for row in rows)
        mode_width, mode_count = widths.most_common(1)[0]
        if mode_width == 1:
            continue
        score = mode_width * (mode_count / len(rows))
        if score > best_score:
            best_score = score
            best_delim = delim
    return best_delim


# ══════════════════════════════════════════════════════════════════════════════
# DATAFRAME → DATASET
# ══════════════════════════════════════════════════════════════════════════════

EMPTY_HEADER = "__EMPTY"


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    if not isinstance(value, str) and pd.isna(value):
        return ""
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    return value


def _header_text(value: Any) -> str:
    value = _cell(value)
    if value == "":
        return EMPTY_HEADER
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value)


def _unique_headers(values: list[Any]) -> list[str]:
    """
    Name header cells the way spreadsheet exports usually do.

    Blank cells become "__EMPTY"; repeats get a numeric suffix, so
    ["CPF", "CPF", "", ""] turns into ["CPF", "CPF_1", "__EMPTY", "__EMPTY_1"].
    """
    seen: dict[str, int] = {}
    headers: list[str] = []
    for value in values:
        name = _header_text(value)
        count = seen.get(name, 0)
        if not count:
            seen[name] = 1
            unique = name
        else:
            unique = f"{name}_{count}"
            while unique in seen:
                count += 1
                unique = f"{name}_{count}"
            seen[name] = count + 1
            seen[unique] = 1
        headers.append(unique)
    return headers


def _frame_to_dataset(
    df: pd.DataFrame,
    sheet_name: Optional[str] = None,
    source: Optional[str] = None,
) -> Dataset:
    """
    Build a Dataset from a frame read with header=None.

    The first row holds the headers. Rows whose cells are all blank are
    dropped.
    """
    if df.empty:
        return Dataset(sheet_name=sheet_name, source=source)

    rows = list(df.itertuples(index=False, name=None))
    headers = _unique_headers(list(rows[0]))
    records = []
    for row in rows[1:]:
        record = {header: _cell(value) for header, value in zip(headers, row)}
        if all(value == "" for value in record.values()):
            continue
        records.append(record)
    return Dataset(headers=headers, records=records, sheet_name=sheet_name, source=source)


# ══════════════════════════════════════════════════════════════════════════════
# FORMAT LOADERS
# ══════════════════════════════════════════════════════════════════════════════

def _load_text(raw: bytes, suffix: str, source: Optional[str]) -> dict:
    """Load .csv, .tsv, or .txt bytes; every cell is kept as text."""
    enc  = _detect_encoding(raw)
    text = _read_text_safely(raw, enc)

    delimiter = "\t" if suffix == ".tsv" else _detect_delimiter(text)
    sep = r"\|" if delimiter == "|" else delimiter

    if not text.strip():
        df = pd.DataFrame()
    else:
        try:
            df = pd.read_csv(
                io.StringIO(text),
                header=None,
                dtype=str,
                keep_default_na=False,
                on_bad_lines="skip",
                sep=sep,
                engine="python",
            )
        except Exception as exc:
            raise ValueError(f"Could not parse {suffix} file: {exc}") from exc

    return {
        "dataset":           _frame_to_dataset(df, source=source),
        "detected_format":   suffix.lstrip("."),
        "detected_encoding": enc,
        "sheet_name":        None,
        "sheet_names":       None,
        "original_rows":     len(df),
        "original_columns":  len(df.columns),
        "warnings":          [],
    }


def _require_reader(suffix: str) -> str:
    """Return the pandas engine for a workbook suffix, checking optional readers."""
    if suffix == ".xls":
        try:
            import xlrd  # noqa: F401
        except ImportError:
            raise ImportError(".xls files require xlrd; run: pip install xlrd")
        return "xlrd"
    if suffix == ".ods":
        try:
            import odf  # noqa: F401
        except ImportError:
            raise ImportError(".ods files require odfpy; run: pip install odfpy")
        return "odf"
    return "openpyxl"


def _load_workbook(workbook: Source, suffix: str, source: Optional[str]) -> dict:
    """
    Load the first sheet of an .xlsx, .xlsm, .xls or .ods workbook.

    Cells are read with dtype=object so numeric CPFs stay integers instead
    of turning into floats when a column has blanks.
    """
    engine = _require_reader(suffix)
    warnings: list[str] = []

    try:
        with pd.ExcelFile(workbook, engine=engine) as xf:
            all_sheets = [str(name) for name in xf.sheet_names]
            first = xf.sheet_names[0]
            df = xf.parse(first, header=None, dtype=object, keep_default_na=False)
    except ImportError:
        raise
    except Exception as exc:
        raise ValueError(f"Could not open workbook: {exc}") from exc

    if len(all_sheets) > 1:
        warnings.append(
            f"Multiple sheets found ({len(all_sheets)} total); "
            f"used '{all_sheets[0]}'. Ignored: {all_sheets[1:]}"
        )

    return {
        "dataset":           _frame_to_dataset(df, sheet_name=all_sheets[0], source=source),
        "detected_format":   suffix.lstrip("."),
        "detected_encoding": None,
        "sheet_name":        all_sheets[0],
        "sheet_names":       all_sheets,
        "original_rows":     len(df),
        "original_columns":  len(df.columns),
        "warnings":          warnings,
    }


def _check_suffix(suffix: str) -> None:
    if suffix not in ALL_FORMATS:
        supported = ", ".join(sorted(ALL_FORMATS))
        raise ValueError(
            f"Unsupported format '{suffix or '[missing extension]'}'. Supported: {supported}"
        )


# ══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════════

def load_file(path: "str | Path") -> dict:
    """
    Load a spreadsheet file from disk.

    Raises:
        FileNotFoundError  if the file does not exist.
        ValueError         if the format is unsupported or unreadable.
        ImportError        if a required optional reader is missing.
    """
    path   = Path(path)
    suffix = path.suffix.lower()

    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    _check_suffix(suffix)

    logger.debug("Loading %s", path)
    if suffix in TEXT_FORMATS:
        loaded = _load_text(path.read_bytes(), suffix, source=path.name)
    else:
        loaded = _load_workbook(path, suffix, source=path.name)
    logger.info("Loaded %s: %d rows", path.name, len(loaded["dataset"]))
    return loaded


def load_upload(name: str, data: bytes) -> dict:
    """Load an in-memory upload, picking the reader from the file name."""
    suffix = Path(name).suffix.lower()
    _check_suffix(suffix)

    logger.debug("Loading upload %s (%d bytes)", name, len(data))
    if suffix in TEXT_FORMATS:
        loaded = _load_text(data, suffix, source=name)
    else:
        loaded = _load_workbook(io.BytesIO(data), suffix, source=name)
    logger.info("Loaded %s: %d rows", name, len(loaded["dataset"]))
    return loaded

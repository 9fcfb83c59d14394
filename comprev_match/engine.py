"""
Reconciliation of the COMPREV general base against pensioner and retiree
sheets, keyed by CPF.

    result = process_files("base.xlsx", pensionistas="pen.xlsx")
    result = reconcile(base_dataset, aposentados=retirees_dataset)

Rows of the general base whose "destinatário" column mentions RGPS are
dropped before any comparison. Pensioners are matched against the filtered
base (base rows whose CPF appears in the pensioner sheet); retirees are
diffed against it (retiree rows whose CPF is absent from the filtered base).
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Iterable, Optional

from comprev_match.cpf import clean_cpf
from comprev_match.dataset import Dataset, Record
from comprev_match.headers import (
    CPF_KEYWORDS,
    DESTINATARIO_KEYWORDS,
    PENSIONISTA_CPF_KEYWORDS,
    find_column_name,
)
from comprev_match.loader import load_file, load_upload
from comprev_match.log import get_logger

logger = get_logger(__name__)

RGPS_MARKER = "RGPS"

MSG_SUCCESS = "Analysis completed successfully."
MSG_BASE_EMPTY = "The general base file is empty."
MSG_BASE_NO_CPF = "CPF column not found in the general base."
MSG_NO_COMPARISON = "No comparison file (pensioners or retirees) was provided."
MSG_PROCESSING_ERROR = "Error processing files. Check the formats."


@dataclass
class ComparisonStats:
    base_total: int = 0
    base_filtered: int = 0
    pensionistas_total: Optional[int] = None
    pensionistas_matches: Optional[int] = None
    aposentados_total: Optional[int] = None
    aposentados_missing: Optional[int] = None

    def as_dict(self) -> dict[str, int]:
        """Counts that were actually computed; skipped branches are left out."""
        return {
            item.name: getattr(self, item.name)
            for item in fields(self)
            if getattr(self, item.name) is not None
        }


@dataclass
class ComparisonResult:
    success: bool
    message: str
    stats: ComparisonStats = field(default_factory=ComparisonStats)
    pensionistas_matches: Optional[Dataset] = None
    aposentados_missing: Optional[Dataset] = None
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def failure(
        cls,
        message: str,
        stats: Optional[ComparisonStats] = None,
        warnings: Optional[list[str]] = None,
    ) -> "ComparisonResult":
        return cls(
            success=False,
            message=message,
            stats=stats or ComparisonStats(),
            warnings=list(warnings or []),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "stats": self.stats.as_dict(),
            "outputs": {
                "pensionistas_matches": self.pensionistas_matches is not None,
                "aposentados_missing": self.aposentados_missing is not None,
            },
            "warnings": list(self.warnings),
        }


# ── building blocks ────────────────────────────────────────────────────────────

def is_rgps(value: Any) -> bool:
    return RGPS_MARKER in str(value or "").upper()


def filter_regime(records: Iterable[Record], column: Optional[str]) -> list[Record]:
    """Drop RGPS rows. Without a regime column every row is kept."""
    records = list(records)
    if column is None:
        return records
    return [record for record in records if not is_rgps(record.get(column))]


def build_cpf_set(records: Iterable[Record], column: str) -> set[str]:
    cpfs: set[str] = set()
    for record in records:
        cpf = clean_cpf(record.get(column))
        if cpf:
            cpfs.add(cpf)
    return cpfs


def _check_base(base: Optional[Dataset]) -> tuple[Optional[ComparisonResult], Optional[str]]:
    if base is None or len(base) == 0:
        return ComparisonResult.failure(MSG_BASE_EMPTY), None
    cpf_column = find_column_name(base.headers, CPF_KEYWORDS)
    if cpf_column is None:
        return ComparisonResult.failure(MSG_BASE_NO_CPF), None
    return None, cpf_column


# ── branches ───────────────────────────────────────────────────────────────────

def match_pensionistas(
    base: Dataset,
    base_filtered: list[Record],
    base_cpf_column: str,
    pensionistas: Dataset,
    result: ComparisonResult,
) -> None:
    if len(pensionistas) == 0:
        result.warnings.append("Pensioners file is empty; comparison skipped.")
        logger.info("Pensioners branch skipped: empty dataset")
        return
    column = find_column_name(pensionistas.headers, PENSIONISTA_CPF_KEYWORDS)
    if column is None:
        result.warnings.append("CPF column not found in the pensioners file; comparison skipped.")
        logger.info("Pensioners branch skipped: no CPF column in %s", pensionistas.headers)
        return

    pensionista_cpfs = build_cpf_set(pensionistas, column)
    matches = [
        record
        for record in base_filtered
        if clean_cpf(record.get(base_cpf_column)) in pensionista_cpfs
    ]
    result.pensionistas_matches = base.subset(matches)
    result.stats.pensionistas_total = len(pensionistas)
    result.stats.pensionistas_matches = len(matches)
    logger.info("Pensioners: %d rows, %d base matches", len(pensionistas), len(matches))


def diff_aposentados(
    base_cpfs: set[str],
    aposentados: Dataset,
    result: ComparisonResult,
) -> None:
    if len(aposentados) == 0:
        result.warnings.append("Retirees file is empty; comparison skipped.")
        logger.info("Retirees branch skipped: empty dataset")
        return
    column = find_column_name(aposentados.headers, CPF_KEYWORDS)
    if column is None:
        result.warnings.append("CPF column not found in the retirees file; comparison skipped.")
        logger.info("Retirees branch skipped: no CPF column in %s", aposentados.headers)
        return

    # Blank CPFs are never in the base set, so those rows always count as missing.
    missing = [
        record
        for record, cpf in zip(aposentados, aposentados.column(column))
        if clean_cpf(cpf) not in base_cpfs
    ]
    result.aposentados_missing = aposentados.subset(missing)
    result.stats.aposentados_total = len(aposentados)
    result.stats.aposentados_missing = len(missing)
    logger.info("Retirees: %d rows, %d missing from base", len(aposentados), len(missing))


# ── entry points ───────────────────────────────────────────────────────────────

def reconcile(
    base: Optional[Dataset],
    pensionistas: Optional[Dataset] = None,
    aposentados: Optional[Dataset] = None,
) -> ComparisonResult:
    """
    Compare the general base with the optional pensioner and retiree sheets.

    Never raises on bad data: an empty base, a base without a CPF column and
    a call with no comparison sheet all come back as failed results. The
    last one still carries the base counts.
    """
    failed, cpf_column = _check_base(base)
    if failed is not None:
        logger.warning("Reconciliation failed: %s", failed.message)
        return failed

    destinatario_column = find_column_name(base.headers, DESTINATARIO_KEYWORDS)
    base_filtered = filter_regime(base, destinatario_column)
    base_cpfs = build_cpf_set(base_filtered, cpf_column)
    logger.info(
        "Base: %d rows, %d after RGPS filter (CPF column %r, regime column %r)",
        len(base),
        len(base_filtered),
        cpf_column,
        destinatario_column,
    )

    stats = ComparisonStats(base_total=len(base), base_filtered=len(base_filtered))
    if pensionistas is None and aposentados is None:
        return ComparisonResult.failure(MSG_NO_COMPARISON, stats=stats)

    result = ComparisonResult(success=True, message=MSG_SUCCESS, stats=stats)
    if pensionistas is not None:
        match_pensionistas(base, base_filtered, cpf_column, pensionistas, result)
    if aposentados is not None:
        diff_aposentados(base_cpfs, aposentados, result)
    return result


def load_source(source: Any) -> dict:
    """Load a path, or an upload object exposing .name and .getvalue()."""
    if hasattr(source, "getvalue"):
        return load_upload(source.name, source.getvalue())
    return load_file(source)


def process_files(
    base: Any,
    pensionistas: Any = None,
    aposentados: Any = None,
) -> ComparisonResult:
    """
    Load the sheets one after the other (base, pensioners, retirees) and
    reconcile them.

    Comparison sheets are not read when the base already fails its checks.
    Any load error becomes a failed result with zero counts.
    """
    warnings: list[str] = []
    try:
        loaded = load_source(base)
        warnings.extend(loaded["warnings"])
        base_dataset = loaded["dataset"]

        failed, _ = _check_base(base_dataset)
        if failed is not None:
            logger.warning("Reconciliation failed: %s", failed.message)
            failed.warnings.extend(warnings)
            return failed

        pensionistas_dataset = None
        if pensionistas is not None:
            loaded = load_source(pensionistas)
            warnings.extend(loaded["warnings"])
            pensionistas_dataset = loaded["dataset"]

        aposentados_dataset = None
        if aposentados is not None:
            loaded = load_source(aposentados)
            warnings.extend(loaded["warnings"])
            aposentados_dataset = loaded["dataset"]

        result = reconcile(base_dataset, pensionistas_dataset, aposentados_dataset)
    except Exception as exc:
        logger.exception("Could not process files")
        return ComparisonResult.failure(MSG_PROCESSING_ERROR, warnings=[str(exc)])

    result.warnings[:0] = warnings
    return result

"""Versioned contract for the machine-readable comparison summary."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from comprev_match import __version__ as TOOL_VERSION

CONTRACT_VERSIONS = {
    "comprev_match.compare": "1.0.0",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def build_contract(name: str) -> dict[str, str]:
    version = CONTRACT_VERSIONS[name]
    return {"name": name, "version": version}


def build_run_summary(
    *,
    inputs: dict[str, Path | None],
    status: str = "ok",
    output_files: list[Path] | None = None,
    metrics: dict[str, Any] | None = None,
    warnings: list[str] | None = None,
) -> dict[str, Any]:
    return {
        "tool": "comprev-match",
        "command": "compare",
        "status": status,
        "generated_at": utc_now_iso(),
        "input_files": {key: str(path) if path else None for key, path in inputs.items()},
        "output_files": [str(path) for path in output_files or []],
        "warnings_count": len(warnings or []),
        "warnings": list(warnings or []),
        "metrics": metrics or {},
    }


def build_compare_summary(
    result,
    *,
    inputs: dict[str, Path | None],
    output_files: list[Path] | None = None,
) -> dict[str, Any]:
    contract = build_contract("comprev_match.compare")
    payload = result.as_dict()
    payload.update(
        {
            "contract": contract,
            "schema_version": contract["version"],
            "tool_version": TOOL_VERSION,
            "run_summary": build_run_summary(
                inputs=inputs,
                status="ok" if result.success else "failed",
                output_files=output_files,
                metrics=result.stats.as_dict(),
                warnings=result.warnings,
            ),
        }
    )
    return payload

from __future__ import annotations

import re
from typing import Any

import pandas as pd

NON_DIGIT_RE = re.compile(r"[^0-9]")


def clean_cpf(value: Any) -> str:
    """Reduce a CPF cell to its digits. Blank-like values give ""."""
    if isinstance(value, str):
        return NON_DIGIT_RE.sub("", value)
    if value is None or pd.isna(value) or not value:
        return ""
    # Numeric cells print without a trailing ".0" in the source sheet.
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return NON_DIGIT_RE.sub("", str(value))

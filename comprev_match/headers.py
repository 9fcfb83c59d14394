"""Fuzzy header matching for real-world spreadsheet exports."""

from __future__ import annotations

import unicodedata
from typing import Iterable, Optional

CPF_KEYWORDS = ("cpf",)
# "cpf legador" is already covered by "cpf"; listed for older pensioner exports.
PENSIONISTA_CPF_KEYWORDS = ("cpf", "cpf legador")
DESTINATARIO_KEYWORDS = ("destinatario", "destinatário")


def normalize_header(header: str) -> str:
    decomposed = unicodedata.normalize("NFD", str(header).lower())
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.strip()


def find_column_name(headers: Iterable[str], keywords: Iterable[str]) -> Optional[str]:
    """
    Return the first header whose normalized form contains any keyword.

    Matching is substring-based, so "CPF do Servidor" and "nr_cpf" both match
    "cpf". Keywords are compared as given; only the header side is
    normalized.
    """
    keywords = tuple(keywords)
    for header in headers:
        normalized = normalize_header(header)
        if any(keyword in normalized for keyword in keywords):
            return header
    return None

#!/usr/bin/env python3
"""
Generates demo workbooks in sample-data/ for trying comprev-match by hand.

Run from the repo root:
    python sample-data/generate_samples.py
    comprev-match compare sample-data/base_geral.xlsx \
        --pensionistas sample-data/pensionistas.xlsx \
        --aposentados sample-data/aposentados.xlsx

What is baked in:
  base_geral.xlsx
    - CPFs in mixed formats (punctuated text, bare digits, numeric cells)
    - Two RGPS rows in "Destinatário" (one lower-case) that must be dropped
    - A blank CPF row
    - A second sheet that is ignored
  pensionistas.xlsx
    - Header "CPF Legador"; two CPFs present in the filtered base,
      one only present on an RGPS row, one unknown
  aposentados.xlsx
    - Header "Nº CPF"; one CPF only on an RGPS row and one unknown, both
      reported as missing
"""

from pathlib import Path

import openpyxl

OUTPUT_DIR = Path(__file__).parent


def save(path: Path, headers: list, rows: list, extra_sheet: bool = False) -> None:
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Dados"
    ws.append(headers)
    for row in rows:
        ws.append(row)
    if extra_sheet:
        notes = wb.create_sheet("Notas")
        notes.append(["Exportado do sistema COMPREV"])
    wb.save(path)
    print(f"Wrote {path}")


save(
    OUTPUT_DIR / "base_geral.xlsx",
    ["Requerimento", "Nome", "CPF", "Destinatário"],
    [
        ["REQ-001", "Maria da Silva", "111.222.333-44", "INSS"],
        ["REQ-002", "João Souza", "22233344455", "RPPS Município"],
        ["REQ-003", "Ana Lima", 33344455566, "RGPS"],
        ["REQ-004", "Pedro Alves", "444.555.666-77", "rgps - regime geral"],
        ["REQ-005", "Carla Dias", "555.666.777-88", ""],
        ["REQ-006", "Sem CPF", "", "INSS"],
    ],
    extra_sheet=True,
)

save(
    OUTPUT_DIR / "pensionistas.xlsx",
    ["Nome Pensionista", "CPF Legador"],
    [
        ["Beneficiário 1", "11122233344"],
        ["Beneficiário 2", "555.666.777-88"],
        ["Beneficiário 3", "333.444.555-66"],
        ["Beneficiário 4", "99988877766"],
    ],
)

save(
    OUTPUT_DIR / "aposentados.xlsx",
    ["Nome", "Nº CPF", "Matrícula"],
    [
        ["Aposentado 1", "222.333.444-55", "1001"],
        ["Aposentado 2", "444.555.666-77", "1002"],
        ["Aposentado 3", "12345678900", "1003"],
    ],
)

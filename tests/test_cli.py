from __future__ import annotations

import json
import os
import subprocess
import sys
import tempfile
import unittest
from pathlib import Path

from openpyxl import Workbook


ROOT = Path(__file__).resolve().parents[1]
CLI = [sys.executable, "-m", "comprev_match.cli"]
FIXED_STAMP = "20260301T010203Z"


def run_cli(*args: str, cwd: Path = ROOT, env: dict[str, str] | None = None) -> subprocess.CompletedProcess[str]:
    merged_env = dict(os.environ)
    merged_env["COMPREV_MATCH_OUTPUT_STAMP"] = FIXED_STAMP
    merged_env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(ROOT), merged_env.get("PYTHONPATH")]))
    if env:
        merged_env.update(env)
    return subprocess.run(
        [*CLI, *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        env=merged_env,
    )


def write_xlsx(path: Path, headers: list, rows: list) -> Path:
    wb = Workbook()
    ws = wb.active
    ws.append(headers)
    for row in rows:
        ws.append(row)
    wb.save(path)
    return path


class ComprevMatchCliTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.base = write_xlsx(
            self.tmp / "base_geral.xlsx",
            ["Requerimento", "CPF", "Destinatário"],
            [
                ["R1", "111.222.333-44", "INSS"],
                ["R2", "222.333.444-55", "RGPS"],
                ["R3", 33344455566, "RPPS"],
            ],
        )
        self.pensionistas = write_xlsx(self.tmp / "pensionistas.xlsx", ["CPF Legador"], [["11122233344"], ["22233344455"]])
        self.aposentados = write_xlsx(self.tmp / "aposentados.xlsx", ["CPF"], [["22233344455"], ["333.444.555-66"]])

    def tearDown(self):
        self._tmp.cleanup()

    def test_compare_writes_both_exports_and_summary(self):
        out_dir = self.tmp / "out"
        proc = run_cli(
            "compare",
            str(self.base),
            "--pensionistas",
            str(self.pensionistas),
            "--aposentados",
            str(self.aposentados),
            "--out",
            str(out_dir),
        )
        self.assertEqual(proc.returncode, 0, proc.stderr)
        self.assertIn("Analysis completed successfully.", proc.stderr)
        self.assertIn("Summary written:", proc.stderr)

        names = sorted(path.name for path in out_dir.iterdir())
        self.assertEqual(len(names), 3)
        self.assertTrue(any(name.startswith("Resultado_Pensionistas_") for name in names))
        self.assertTrue(any(name.startswith("Resultado_Aposentados_Ausentes_") for name in names))

        summary = json.loads((out_dir / "summary.json").read_text(encoding="utf-8"))
        self.assertEqual(
            summary["stats"],
            {
                "base_total": 3,
                "base_filtered": 2,
                "pensionistas_total": 2,
                "pensionistas_matches": 1,
                "aposentados_total": 2,
                "aposentados_missing": 1,
            },
        )

    def test_json_stdout_contains_only_json(self):
        proc = run_cli(
            "compare",
            str(self.base),
            "--aposentados",
            str(self.aposentados),
            "--out",
            str(self.tmp / "out"),
            "--json",
        )
        self.assertEqual(proc.returncode, 0, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertEqual(payload["contract"]["name"], "comprev_match.compare")
        self.assertEqual(payload["outputs"], {"pensionistas_matches": False, "aposentados_missing": True})

    def test_missing_comparison_file_returns_exit_3_with_base_counts(self):
        proc = run_cli("compare", str(self.base), "--out", str(self.tmp / "out"), "--json")
        self.assertEqual(proc.returncode, 3, proc.stderr)
        payload = json.loads(proc.stdout)
        self.assertFalse(payload["success"])
        self.assertEqual(payload["stats"], {"base_total": 3, "base_filtered": 2})

    def test_empty_base_returns_exit_3(self):
        empty = write_xlsx(self.tmp / "vazia.xlsx", ["CPF"], [])
        proc = run_cli(
            "compare",
            str(empty),
            "--pensionistas",
            str(self.pensionistas),
            "--out",
            str(self.tmp / "out"),
        )
        self.assertEqual(proc.returncode, 3)
        self.assertIn("The general base file is empty.", proc.stderr)

    def test_unreadable_input_returns_exit_2(self):
        corrupt = self.tmp / "corrupt.xlsx"
        corrupt.write_bytes(b"not a workbook")
        proc = run_cli(
            "compare",
            str(self.base),
            "--pensionistas",
            str(corrupt),
            "--out",
            str(self.tmp / "out"),
            "-q",
        )
        self.assertEqual(proc.returncode, 2)
        self.assertEqual(sorted(path.name for path in (self.tmp / "out").iterdir()), ["summary.json"])
        summary = json.loads((self.tmp / "out" / "summary.json").read_text(encoding="utf-8"))
        self.assertEqual(summary["message"], "Error processing files. Check the formats.")
        self.assertEqual(summary["run_summary"]["status"], "failed")

    def test_missing_input_returns_exit_1(self):
        proc = run_cli("compare", str(self.tmp / "nope.xlsx"), "--aposentados", str(self.aposentados))
        self.assertEqual(proc.returncode, 1)
        self.assertIn("Base file not found", proc.stderr)

    def test_unsupported_input_returns_exit_1(self):
        pdf = self.tmp / "base.pdf"
        pdf.write_bytes(b"%PDF")
        proc = run_cli("compare", str(pdf), "--aposentados", str(self.aposentados))
        self.assertEqual(proc.returncode, 1)
        self.assertIn("Unsupported file type '.pdf'", proc.stderr)

    def test_refuses_to_overwrite_existing_outputs(self):
        args = ("compare", str(self.base), "--aposentados", str(self.aposentados), "--out", str(self.tmp / "out"))
        first = run_cli(*args)
        self.assertEqual(first.returncode, 0, first.stderr)
        second = run_cli(*args)
        self.assertEqual(second.returncode, 1)
        self.assertIn("Refusing to overwrite existing output", second.stderr)

    def test_existing_summary_blocks_every_write(self):
        out_dir = self.tmp / "out"
        out_dir.mkdir()
        (out_dir / "summary.json").write_text("{}", encoding="utf-8")

        proc = run_cli("compare", str(self.base), "--aposentados", str(self.aposentados), "--out", str(out_dir))

        self.assertEqual(proc.returncode, 1)
        self.assertIn("Refusing to overwrite existing output", proc.stderr)
        self.assertIn("summary.json", proc.stderr)
        self.assertEqual(sorted(path.name for path in out_dir.iterdir()), ["summary.json"])
        self.assertEqual((out_dir / "summary.json").read_text(encoding="utf-8"), "{}")

    def test_default_output_directory_uses_stamp(self):
        proc = run_cli("compare", str(self.base), "--aposentados", str(self.aposentados), cwd=self.tmp)
        self.assertEqual(proc.returncode, 0, proc.stderr)
        output_dir = self.tmp / "comprev-match-output" / f"base_geral-{FIXED_STAMP}"
        self.assertTrue((output_dir / "summary.json").exists())

    def test_usage_errors_return_exit_1(self):
        proc = run_cli("compare")
        self.assertEqual(proc.returncode, 1)
        self.assertIn("required", proc.stderr)

    def test_version_prints_package_version(self):
        sys.path.insert(0, str(ROOT))
        from comprev_match import __version__

        proc = run_cli("version")
        self.assertEqual(proc.returncode, 0)
        self.assertEqual(proc.stdout.strip(), __version__)


if __name__ == "__main__":
    unittest.main()

import sys
import unittest
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from comprev_match import __version__
from comprev_match.contracts import CONTRACT_VERSIONS, build_compare_summary, build_contract, utc_now_iso
from comprev_match.dataset import Dataset
from comprev_match.engine import reconcile


class ContractTests(unittest.TestCase):
    def test_compare_summary_emits_versioned_contract_and_run_summary(self):
        base = Dataset.from_records([{"CPF": "1", "Destinatário": "RGPS"}, {"CPF": "2", "Destinatário": ""}])
        result = reconcile(base, aposentados=Dataset.from_records([{"cpf": "1"}]))

        summary = build_compare_summary(
            result,
            inputs={"base": Path("base.xlsx"), "pensionistas": None, "aposentados": Path("apo.xlsx")},
            output_files=[Path("out/Resultado_Aposentados_Ausentes_2024-01-01.xlsx")],
        )

        self.assertEqual(summary["contract"], {"name": "comprev_match.compare", "version": "1.0.0"})
        self.assertEqual(summary["schema_version"], summary["contract"]["version"])
        self.assertEqual(summary["tool_version"], __version__)
        self.assertTrue(summary["success"])
        self.assertEqual(summary["stats"]["aposentados_missing"], 1)

        run = summary["run_summary"]
        self.assertEqual(run["tool"], "comprev-match")
        self.assertEqual(run["status"], "ok")
        self.assertEqual(run["input_files"], {"base": "base.xlsx", "pensionistas": None, "aposentados": "apo.xlsx"})
        self.assertEqual(len(run["output_files"]), 1)
        self.assertEqual(run["metrics"], result.stats.as_dict())
        self.assertTrue(run["generated_at"].endswith("Z"))

    def test_failed_result_is_marked_failed(self):
        result = reconcile(Dataset())
        summary = build_compare_summary(result, inputs={"base": Path("base.xlsx")})
        self.assertFalse(summary["success"])
        self.assertEqual(summary["run_summary"]["status"], "failed")
        self.assertEqual(summary["run_summary"]["output_files"], [])

    def test_unknown_contract_name_raises(self):
        with self.assertRaises(KeyError):
            build_contract("comprev_match.unknown")
        self.assertIn("comprev_match.compare", CONTRACT_VERSIONS)

    def test_utc_timestamp_has_no_microseconds(self):
        stamp = utc_now_iso()
        self.assertRegex(stamp, r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z$")


if __name__ == "__main__":
    unittest.main()

import json
import tempfile
import unittest
from pathlib import Path

from typer.testing import CliRunner

from convo.cli import app
from convo.narrative.loader import load_document_file

CONVERSATIONS = Path(__file__).resolve().parents[1] / "conversations"
SAMPLE = CONVERSATIONS / "blacksmith.yml"


class TestCli(unittest.TestCase):
    def setUp(self):
        self.runner = CliRunner()
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def test_decode_then_encode(self):
        graph_json = self.tmp / "graph.json"
        result = self.runner.invoke(app, ["decode", str(SAMPLE), "--out", str(graph_json)])
        self.assertEqual(result.exit_code, 0, result.output)

        data = json.loads(graph_json.read_text(encoding="utf-8"))
        self.assertEqual([n["id"] for n in data["nodes"]], ["blacksmith_greet", "blacksmith_shop", "town_lore"])
        self.assertIn("blacksmith_switch", data["passthrough"])

        out_yml = self.tmp / "out.yml"
        result = self.runner.invoke(app, ["encode", str(graph_json), "--out", str(out_yml)])
        self.assertEqual(result.exit_code, 0, result.output)
        out = load_document_file(out_yml)
        self.assertEqual(list(out), list(load_document_file(SAMPLE)))
        self.assertEqual(out["blacksmith_greet"]["player"][0]["then"], "goto blacksmith_shop")

    def test_encode_edited_graph_json(self):
        graph_json = self.tmp / "graph.json"
        self.runner.invoke(app, ["decode", str(SAMPLE), "--out", str(graph_json)])
        data = json.loads(graph_json.read_text(encoding="utf-8"))
        # Drop the connection to the lore node, as the editor would
        data["edges"] = [e for e in data["edges"] if e["target"] != "town_lore"]
        graph_json.write_text(json.dumps(data), encoding="utf-8")

        out_yml = self.tmp / "out.yml"
        result = self.runner.invoke(app, ["encode", str(graph_json), "--out", str(out_yml)])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertNotIn("then", load_document_file(out_yml)["blacksmith_greet"]["player"][2])

    def test_roundtrip(self):
        result = self.runner.invoke(app, ["roundtrip", str(SAMPLE)])
        self.assertEqual(result.exit_code, 0, result.output)

    def test_roundtrip_reports_section_order_change(self):
        moved = self.tmp / "moved.yml"
        moved.write_text("a:\n  npc: [hi]\n  player: []\n__option__:\n  theme: chat\n", encoding="utf-8")
        result = self.runner.invoke(app, ["roundtrip", str(moved)])
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Section order changes on save", result.output)

    def test_roundtrip_keeps_sample_order(self):
        result = self.runner.invoke(app, ["roundtrip", str(SAMPLE)])
        self.assertNotIn("Section order changes", result.output)

    def test_check_reports_unresolved_edge(self):
        bad = self.tmp / "bad.yml"
        bad.write_text("a:\n  npc: hi\n  player:\n    - reply: go\n      then: goto nowhere\n", encoding="utf-8")
        result = self.runner.invoke(app, ["check", str(bad)])
        self.assertEqual(result.exit_code, 1)

    def test_check_clean_file(self):
        result = self.runner.invoke(app, ["check", str(SAMPLE)])
        self.assertEqual(result.exit_code, 0, result.output)

    def test_decode_rejects_non_mapping(self):
        bad = self.tmp / "list.yml"
        bad.write_text("- a\n- b\n", encoding="utf-8")
        result = self.runner.invoke(app, ["decode", str(bad)])
        self.assertEqual(result.exit_code, 1)

    def test_decode_missing_file(self):
        result = self.runner.invoke(app, ["decode", str(self.tmp / "nope.yml")])
        self.assertEqual(result.exit_code, 1)


if __name__ == "__main__":
    unittest.main()

import copy
import unittest
from pathlib import Path

from convo.narrative.decoder import decode_document
from convo.narrative.diagnostics import ERROR, validate_graph
from convo.narrative.editing import connect, disconnect, remove_node, rename_node
from convo.narrative.encoder import encode_document, encode_graph
from convo.narrative.loader import load_document, dump_document, load_document_file

CONVERSATIONS = Path(__file__).resolve().parents[1] / "conversations"


class TestRoundTrip(unittest.TestCase):
    def setUp(self):
        self.doc = load_document_file(CONVERSATIONS / "blacksmith.yml")

    def test_unedited_roundtrip_equals_original(self):
        out = encode_document(decode_document(self.doc))
        # Only normalisation: scalar npc becomes a one-line list
        expected = copy.deepcopy(self.doc)
        expected["blacksmith_shop"]["npc"] = ["Steel or iron?"]
        self.assertEqual(out, expected)
        self.assertEqual(list(out), list(self.doc))

    def test_second_roundtrip_is_identical(self):
        once = encode_document(decode_document(self.doc))
        twice = encode_document(decode_document(once))
        self.assertEqual(once, twice)

    def test_through_yaml_text(self):
        out = encode_document(decode_document(self.doc))
        reparsed = load_document(dump_document(out))
        self.assertEqual(reparsed, out)
        self.assertEqual(list(reparsed), list(out))

    def test_goto_targets_survive(self):
        g = decode_document(self.doc)
        self.assertEqual(
            sorted((e.source, e.target) for e in g.edges),
            [("blacksmith_greet", "blacksmith_shop"), ("blacksmith_greet", "town_lore"),
             ("blacksmith_shop", "blacksmith_greet"), ("blacksmith_shop", "blacksmith_switch")],
        )

    def test_goto_into_switch_section_is_kept(self):
        out = encode_document(decode_document(self.doc))
        self.assertEqual(out["blacksmith_shop"]["player"][2]["then"], "goto blacksmith_switch")
        self.assertEqual(out["blacksmith_switch"], self.doc["blacksmith_switch"])

    def test_multiline_script_with_goto_is_not_an_edge(self):
        g = decode_document(self.doc)
        self.assertIsNone(g.edge_for("blacksmith_shop", "blacksmith_shop-opt-0"))
        out = encode_document(g)
        self.assertEqual(out["blacksmith_shop"]["player"][0]["then"], "take gold 20\ngoto blacksmith_greet")


class TestEditingScenarios(unittest.TestCase):
    def doc(self):
        return {
            "__option__": {"theme": "chat", "title": "{name}", "extra": [1, 2, {"deep": True}]},
            "a": {"npc": ["hi"], "player": [
                {"reply": "diamond", "then": "give diamond"},
                {"reply": "to b", "then": "goto b"},
            ]},
            "b": {"npc": "only", "player": []},
            "X": {"npc": ["x"], "player": []},
        }

    def test_connection_overrides_script(self):
        g = connect(decode_document(self.doc()), "a", "a-opt-0", "X")
        self.assertEqual(encode_document(g)["a"]["player"][0], {"reply": "diamond", "then": "goto X"})

    def test_unconnected_script_survives(self):
        out = encode_document(decode_document(self.doc()))
        self.assertEqual(out["a"]["player"][0], {"reply": "diamond", "then": "give diamond"})

    def test_disconnected_goto_is_cleared(self):
        g = disconnect(decode_document(self.doc()), "a", "a-opt-1")
        self.assertEqual(encode_document(g)["a"]["player"][1], {"reply": "to b"})

    def test_terminal_node(self):
        out = encode_document(decode_document(self.doc()))
        self.assertEqual(out["b"]["player"], [])
        self.assertEqual(out["X"]["player"], [])

    def test_metadata_unchanged_by_edits(self):
        original = self.doc()
        g = decode_document(original)
        g = connect(g, "a", "a-opt-0", "b")
        g = disconnect(g, "a", "a-opt-1")
        g.nodes.reverse()
        out = encode_document(g)
        self.assertEqual(out["__option__"], original["__option__"])
        self.assertEqual(dump_document({"m": out["__option__"]}), dump_document({"m": original["__option__"]}))

    def test_scalar_npc_becomes_one_element_list(self):
        g = decode_document(self.doc())
        self.assertEqual(g.node("b").npc, ["only"])
        self.assertEqual(encode_document(g)["b"]["npc"], ["only"])

    def test_node_list_order_becomes_document_order(self):
        g = decode_document(self.doc())
        g.nodes.reverse()
        self.assertEqual(list(encode_document(g)), ["__option__", "X", "b", "a"])


class TestPassthroughSections(unittest.TestCase):
    def doc(self):
        return {
            "__option__": {"theme": "chat"},
            "a": {"npc": ["hi"], "player": [{"reply": "r", "then": "goto sw"}]},
            "sw": {"when": [{"if": "true", "open": "b"}]},
            "b": {"npc": ["bye"], "player": []},
        }

    def test_goto_to_passthrough_survives(self):
        result = encode_graph(decode_document(self.doc()))
        self.assertEqual(result.document["a"]["player"][0]["then"], "goto sw")
        self.assertEqual(result.dangling, [])

    def test_goto_to_passthrough_is_not_an_error(self):
        issues = validate_graph(decode_document(self.doc()))
        self.assertEqual([i for i in issues if i.level == ERROR], [])

    def test_section_order_kept(self):
        out = encode_document(decode_document(self.doc()))
        self.assertEqual(list(out), ["__option__", "a", "sw", "b"])
        self.assertEqual(out, self.doc())

    def test_leading_section_stays_before_nodes(self):
        doc = {"__option__": {}, "sw": {"when": []}, "a": {"npc": ["x"], "player": []}}
        self.assertEqual(list(encode_document(decode_document(doc))), ["__option__", "sw", "a"])

    def test_section_follows_renamed_node(self):
        g = rename_node(decode_document(self.doc()), "a", "start")
        self.assertEqual(list(encode_document(g)), ["__option__", "start", "sw", "b"])

    def test_section_moves_up_when_its_node_is_removed(self):
        doc = self.doc()
        doc["c"] = {"npc": ["c"], "player": []}
        g = remove_node(decode_document(doc), "a")
        self.assertEqual(list(encode_document(g)), ["__option__", "sw", "b", "c"])

    def test_connect_to_passthrough(self):
        g = decode_document(self.doc())
        g = connect(g, "a", "a-opt-0", "b")
        g = connect(g, "a", "a-opt-0", "sw")
        self.assertEqual(encode_document(g)["a"]["player"][0]["then"], "goto sw")


if __name__ == "__main__":
    unittest.main()

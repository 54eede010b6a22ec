"""
Blueprint Engine — Schema Reconciler Tests

Tier ordering, terminal failures, the repair gate and the error values
handed back to callers.
"""

import json
import os
import sys
import unittest

_base = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, _base)

from artifacts.reconcile import (
    TIER_EXTENDED, TIER_PARSE, TIER_REPAIR, TIER_STRICT,
    SchemaReconciler, is_extended_shaped, parse_json, reconcile_artifact,
)
from artifacts.schemas import CanonicalBlueprint
from lifecycle.config import EngineConfig
from lifecycle.exceptions import (
    USER_RETRY_MESSAGE, MalformedInputError, ReconciliationError, SchemaMismatchError,
)

FIXTURES = os.path.join(os.path.dirname(os.path.abspath(__file__)), "fixtures")


def _fixture_text(name):
    with open(os.path.join(FIXTURES, name)) as f:
        return f.read()


def _fixture(name):
    return json.loads(_fixture_text(name))


class TestParse(unittest.TestCase):

    def test_non_json_is_malformed(self):
        result = reconcile_artifact("Here is your blueprint: {title: ...")
        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, MalformedInputError)
        self.assertNotIsInstance(result.error, SchemaMismatchError)
        self.assertEqual(result.tier, TIER_PARSE)

    def test_empty_text(self):
        self.assertIsInstance(reconcile_artifact("").error, MalformedInputError)

    def test_nan_rejected(self):
        with self.assertRaises(MalformedInputError):
            parse_json('{"duration": NaN}')

    def test_bytes_accepted(self):
        self.assertEqual(parse_json(b'{"a": 1}'), {"a": 1})

    def test_non_text(self):
        with self.assertRaises(MalformedInputError):
            parse_json(None)
        with self.assertRaises(MalformedInputError):
            parse_json(b"\xff\xfe")

    def test_excerpt_kept(self):
        with self.assertRaises(MalformedInputError) as cm:
            parse_json("not json " * 50)
        self.assertLessEqual(len(cm.exception.excerpt), 120)
        self.assertEqual(cm.exception.to_dict()["error"], "malformed_input")


class TestStrictTier(unittest.TestCase):

    def test_canonical_round_trip(self):
        raw = _fixture_text("canonical_blueprint.json")
        result = reconcile_artifact(raw)
        self.assertTrue(result.ok)
        self.assertEqual(result.tier, TIER_STRICT)
        self.assertEqual(result.blueprint.to_dict(), json.loads(raw))

    def test_idempotent(self):
        first = reconcile_artifact(_fixture_text("canonical_blueprint.json")).unwrap()
        second = reconcile_artifact(json.dumps(first.to_dict())).unwrap()
        self.assertEqual(first.to_dict(), second.to_dict())

    def test_explicit_nulls_survive_round_trip(self):
        blueprint = _fixture("canonical_blueprint.json")
        blueprint["timeline"] = None
        blueprint["reviewer"] = None
        result = reconcile_artifact(json.dumps(blueprint))
        self.assertTrue(result.ok)
        out = result.blueprint.to_dict()
        self.assertEqual(out, blueprint)
        self.assertIsNone(out["timeline"])
        self.assertIn("reviewer", out)
        self.assertNotIn("url", out["resources"][0])

    def test_only_one_tier_attempted(self):
        result = reconcile_artifact(_fixture_text("canonical_blueprint.json"))
        self.assertEqual([a.tier for a in result.attempts], [TIER_STRICT])

    def test_strict_types(self):
        blueprint = _fixture("canonical_blueprint.json")
        for path, value in ((("modules", 0, "duration"), "4"),
                            (("modules", 0, "duration"), True),
                            (("modules", 0, "duration"), -1),
                            (("title",), 12),
                            (("learningObjectives",), [])):
            with self.subTest(path=path, value=value):
                broken = json.loads(json.dumps(blueprint))
                node = broken
                for key in path[:-1]:
                    node = node[key]
                node[path[-1]] = value
                result = reconcile_artifact(json.dumps(broken))
                self.assertFalse(result.ok)
                self.assertIsInstance(result.error, SchemaMismatchError)


class TestExtendedTier(unittest.TestCase):

    def test_extended_artifact(self):
        result = reconcile_artifact(_fixture_text("extended_artifact.json"))
        self.assertTrue(result.ok)
        self.assertEqual(result.tier, TIER_EXTENDED)
        self.assertEqual(result.blueprint.title, "Acme Learning Blueprint")
        self.assertEqual([m.duration for m in result.blueprint.modules], [2, 2])
        self.assertEqual([a.tier for a in result.attempts], [TIER_STRICT, TIER_EXTENDED])

    def test_empty_outline_and_objectives(self):
        artifact = {"metadata": {"organization": "Acme"}, "objectives": [],
                    "content_outline": []}
        blueprint = reconcile_artifact(json.dumps(artifact)).unwrap()
        self.assertEqual(len(blueprint.modules), 1)
        self.assertEqual(blueprint.modules[0].title, "Module 1")
        self.assertEqual(blueprint.learningObjectives,
                         ["Define measurable learning objectives"])

    def test_failed_revalidation_is_terminal(self):
        # Blank defaults make the mapped blueprint invalid after extended
        # validation has already succeeded.
        config = EngineConfig.from_dict({"reconciler": {"defaults": {"objective": ""}}})
        artifact = {"metadata": {"organization": "Acme"}, "objectives": [],
                    "content_outline": []}
        result = reconcile_artifact(json.dumps(artifact), config=config)
        self.assertFalse(result.ok)
        self.assertEqual(result.tier, TIER_EXTENDED)
        self.assertIsInstance(result.error, SchemaMismatchError)
        self.assertNotIn(TIER_REPAIR, [a.tier for a in result.attempts])
        self.assertTrue(any(i["location"].startswith("learningObjectives")
                            for i in result.issues))


class TestRepairTier(unittest.TestCase):

    def test_repairs_incomplete_extended(self):
        artifact = {
            "metadata": {"role": "Lead"},
            "learning_objectives": [{"description": "Run incident reviews"}],
            "content_outline": {"modules": [{"title": "Incidents", "duration": "2h"}]},
        }
        result = reconcile_artifact(json.dumps(artifact))
        self.assertTrue(result.ok)
        self.assertEqual(result.tier, TIER_REPAIR)
        self.assertEqual(result.blueprint.title, "Learning Blueprint")
        self.assertEqual(result.blueprint.learningObjectives, ["Run incident reviews"])
        self.assertEqual(result.blueprint.modules[0].duration, 2)

    def test_not_extended_shaped_keeps_strict_cause(self):
        broken = {"title": "Plan", "overview": "x", "modules": []}
        result = reconcile_artifact(json.dumps(broken))
        self.assertFalse(result.ok)
        self.assertEqual(result.tier, TIER_STRICT)
        self.assertIsInstance(result.error, SchemaMismatchError)
        self.assertTrue(all(i["tier"] == TIER_STRICT for i in result.issues))
        self.assertTrue(result.attempts[-1].skipped)

    def test_non_object_json(self):
        for raw in ("[]", "42", '"text"', "null"):
            with self.subTest(raw=raw):
                result = reconcile_artifact(raw)
                self.assertIsInstance(result.error, SchemaMismatchError)

    def test_repair_disabled(self):
        config = EngineConfig.from_dict({"reconciler": {"repair_enabled": False}})
        artifact = {"learning_objectives": ["Lead incidents"]}
        self.assertTrue(reconcile_artifact(json.dumps(artifact)).ok)
        result = reconcile_artifact(json.dumps(artifact), config=config)
        self.assertFalse(result.ok)

    def test_extended_shape_detection(self):
        self.assertTrue(is_extended_shaped({"executive_summary": {}}))
        self.assertFalse(is_extended_shaped({"title": "x"}))
        self.assertFalse(is_extended_shaped(["metadata"]))


class TestResultValue(unittest.TestCase):

    def test_unwrap_raises_error_value(self):
        result = reconcile_artifact("{")
        with self.assertRaises(ReconciliationError):
            result.unwrap()

    def test_to_dict_failure(self):
        out = reconcile_artifact('{"title": 1}').to_dict()
        self.assertFalse(out["ok"])
        self.assertEqual(out["error"], "schema_mismatch")
        self.assertEqual(out["user_message"], USER_RETRY_MESSAGE)
        self.assertTrue(out["retryable"])
        self.assertTrue(out["issues"])
        json.dumps(out)

    def test_to_dict_success(self):
        out = reconcile_artifact(_fixture_text("extended_artifact.json")).to_dict()
        self.assertTrue(out["ok"])
        self.assertEqual(out["tier"], TIER_EXTENDED)
        CanonicalBlueprint.model_validate(out["blueprint"])

    def test_reconcile_value(self):
        result = SchemaReconciler().reconcile_value(_fixture("canonical_blueprint.json"))
        self.assertTrue(result.ok)

    def test_package_level_entry_point(self):
        import lifecycle
        self.assertIs(lifecycle.reconcile_artifact, reconcile_artifact)
        with self.assertRaises(AttributeError):
            lifecycle.not_a_symbol

    def test_logs_outcome(self):
        with self.assertLogs("blueprint_engine.reconciler", level="WARNING") as cm:
            reconcile_artifact("nope")
        self.assertTrue(any("reconcile_failed" in line for line in cm.output))


if __name__ == "__main__":
    unittest.main()

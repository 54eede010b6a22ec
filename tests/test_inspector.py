"""
Blueprint Engine — State Inspector Tests
"""

import os
import sys
import unittest
from datetime import datetime, timedelta, timezone

_base = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, _base)

from lifecycle.inspector import (
    compute_state, dynamic_answers_complete, has_content, minutes_since,
    missing_required_answers, required_question_ids,
)
from lifecycle.record import BlueprintRecord, RecordStatus

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

STATIC = {
    "role": "Manager", "organization": "Acme", "learningGap": "Feedback",
    "resources": "Trainers", "constraints": "Remote",
}

QUESTIONS = [
    {"id": "s1", "questions": [
        {"id": "q1", "required": True},
        {"id": "q2", "required": False},
    ]},
    {"id": "s2", "questions": [
        {"id": "q3", "required": True},
    ]},
]


def _record(**kwargs) -> BlueprintRecord:
    kwargs.setdefault("id", "bp_1")
    return BlueprintRecord(**kwargs)


class TestRequiredQuestions(unittest.TestCase):

    def test_required_ids_in_order(self):
        self.assertEqual(required_question_ids(QUESTIONS), ["q1", "q3"])

    def test_malformed_sections_skipped(self):
        questions = [None, "s", {"questions": "q"}, {"questions": [None, {"required": True}]}]
        self.assertEqual(required_question_ids(questions), [])
        self.assertEqual(required_question_ids({"id": "s1"}), [])

    def test_missing_required(self):
        answers = {"q1": "yes", "q3": []}
        self.assertEqual(missing_required_answers(QUESTIONS, answers), ["q3"])

    def test_complete(self):
        self.assertTrue(dynamic_answers_complete(QUESTIONS, {"q1": "a", "q3": ["b"]}))
        self.assertFalse(dynamic_answers_complete(QUESTIONS, {"q1": "a", "q3": " "}))

    def test_optional_answers_not_needed(self):
        self.assertTrue(dynamic_answers_complete(QUESTIONS, {"q1": "a", "q3": "b", "q2": ""}))

    def test_no_required_questions_any_answer_counts(self):
        questions = [{"id": "s1", "questions": [{"id": "q1"}]}]
        self.assertTrue(dynamic_answers_complete(questions, {"q1": "a"}))
        self.assertFalse(dynamic_answers_complete(questions, {}))


class TestHasContent(unittest.TestCase):

    def test_markdown(self):
        self.assertTrue(has_content(_record(generated_artifact_markdown="# Plan")))

    def test_json(self):
        self.assertTrue(has_content(_record(generated_artifact_json={"title": "x"})))

    def test_empty(self):
        self.assertFalse(has_content(_record(generated_artifact_json={},
                                             generated_artifact_markdown=None)))
        self.assertFalse(has_content(_record(generated_artifact_json=["x"],
                                             generated_artifact_markdown="")))


class TestComputeState(unittest.TestCase):

    def test_draft_with_everything(self):
        state = compute_state(_record(
            static_answers=STATIC,
            dynamic_questions=QUESTIONS,
            dynamic_answers={"q1": "a", "q3": "b"},
        ), now=NOW)
        self.assertTrue(state.static_complete)
        self.assertEqual(state.static_generation, "canonical_flat")
        self.assertTrue(state.has_dynamic_questions)
        self.assertTrue(state.dynamic_complete)
        self.assertTrue(state.has_dynamic_answers)
        self.assertEqual(state.missing_required, ())

    def test_malformed_fields_read_as_absent(self):
        state = compute_state(_record(
            static_answers="garbage",
            dynamic_questions={"not": "a list"},
            dynamic_answers=["not", "a", "map"],
            generated_artifact_json="text",
        ), now=NOW)
        self.assertFalse(state.static_complete)
        self.assertFalse(state.has_dynamic_questions)
        self.assertFalse(state.dynamic_complete)
        self.assertFalse(state.has_dynamic_answers)
        self.assertFalse(state.has_content)

    def test_stale_generating(self):
        state = compute_state(_record(
            status=RecordStatus.GENERATING,
            updated_at=NOW - timedelta(minutes=20),
        ), now=NOW)
        self.assertTrue(state.is_stale)
        self.assertAlmostEqual(state.minutes_since_update, 20.0)

    def test_threshold_is_exclusive(self):
        state = compute_state(_record(
            status=RecordStatus.GENERATING,
            updated_at=NOW - timedelta(minutes=10),
        ), now=NOW)
        self.assertFalse(state.is_stale)

    def test_custom_threshold(self):
        state = compute_state(_record(
            status=RecordStatus.GENERATING,
            updated_at=NOW - timedelta(minutes=3),
        ), now=NOW, stale_after_minutes=2)
        self.assertTrue(state.is_stale)

    def test_only_generating_is_stale(self):
        state = compute_state(_record(
            status=RecordStatus.DRAFT,
            updated_at=NOW - timedelta(days=3),
        ), now=NOW)
        self.assertFalse(state.is_stale)

    def test_no_timestamp_not_stale(self):
        state = compute_state(_record(status=RecordStatus.GENERATING), now=NOW)
        self.assertFalse(state.is_stale)
        self.assertIsNone(state.minutes_since_update)

    def test_integrity_violation(self):
        state = compute_state(_record(status=RecordStatus.COMPLETED), now=NOW)
        self.assertTrue(state.integrity_violation)
        state = compute_state(_record(status=RecordStatus.COMPLETED,
                                      generated_artifact_markdown="# ok"), now=NOW)
        self.assertFalse(state.integrity_violation)

    def test_naive_now(self):
        state = compute_state(_record(
            status=RecordStatus.GENERATING,
            updated_at=NOW - timedelta(minutes=30),
        ), now=NOW.replace(tzinfo=None))
        self.assertTrue(state.is_stale)

    def test_to_dict_is_json_ready(self):
        state = compute_state(_record(dynamic_questions=QUESTIONS), now=NOW)
        out = state.to_dict()
        self.assertEqual(out["missing_required"], ["q1", "q3"])
        self.assertIsInstance(out["static_complete"], bool)

    def test_minutes_since_missing(self):
        self.assertIsNone(minutes_since(None, NOW))


if __name__ == "__main__":
    unittest.main()

"""
Tests for confidence filtering and record validation.
"""

import unittest
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from weave.extraction.filters import confidence_of, filter_by_confidence, validate_records
from weave.extraction.schemas import ExtractedArtifact, ExtractedConnection, Recommendation


class TestFilterByConfidence(unittest.TestCase):

    def test_threshold_is_inclusive_and_order_kept(self):
        records = [
            {"title": "A", "confidence": 0.9},
            {"title": "B", "confidence": 0.4},
            {"title": "C", "confidence": 0.7},
        ]
        kept = filter_by_confidence(records, 0.7)
        self.assertEqual([r["title"] for r in kept], ["A", "C"])

    def test_missing_confidence_dropped_by_default(self):
        records = [{"title": "A"}, {"title": "B", "confidence": 0.8}]
        self.assertEqual(filter_by_confidence(records, 0.5), [records[1]])

    def test_missing_confidence_kept_on_request(self):
        records = [{"title": "A"}, {"title": "B", "confidence": 0.2}]
        self.assertEqual(filter_by_confidence(records, 0.5, keep_missing=True), [records[0]])

    def test_works_on_models(self):
        recs = [Recommendation(title="Solaris", confidence=0.3), Recommendation(title="Stalker")]
        kept = filter_by_confidence(recs, 0.5, keep_missing=True)
        self.assertEqual([r.title for r in kept], ["Stalker"])

    def test_confidence_of_ignores_non_numbers(self):
        self.assertIsNone(confidence_of({"confidence": True}))
        self.assertIsNone(confidence_of({"confidence": "high"}))
        self.assertEqual(confidence_of({"confidence": "0.5"}), 0.5)


class TestValidateRecords(unittest.TestCase):

    def test_invalid_records_dropped(self):
        items = [
            {"title": "The Dispossessed", "type": "book", "confidence": 0.95},
            {"type": "book", "confidence": 0.9},          # no title
            {"title": "Bad", "confidence": 1.5},           # out of range
            "not a dict",
        ]
        valid = validate_records(items, ExtractedArtifact)
        self.assertEqual(len(valid), 1)
        self.assertEqual(valid[0].title, "The Dispossessed")

    def test_non_list_yields_empty(self):
        self.assertEqual(validate_records(None, ExtractedArtifact), [])
        self.assertEqual(validate_records({"title": "x"}, ExtractedArtifact), [])

    def test_overrides_replace_record_values(self):
        items = [
            {"source": "A", "target": "B", "relationship_type": "influenced_by", "confidence": 0.8},
            {"source": "C", "target": "D", "relationship_type": "adapts", "confidence": 0.8,
             "connection_source": "ai_suggested"},
        ]
        valid = validate_records(items, ExtractedConnection, overrides={"connection_source": "user_discovered"})
        self.assertEqual([c.connection_source for c in valid], ["user_discovered", "user_discovered"])

    def test_unknown_relationship_coerced(self):
        items = [
            {"source": "A", "target": "B", "relationship_type": "thematic", "confidence": 0.9},
            {"source": "C", "target": "D", "relationship_type": "Similar_Style", "confidence": 0.9},
            {"source": "E", "target": "F", "confidence": 0.9},
        ]
        valid = validate_records(items, ExtractedConnection, overrides={"connection_source": "ai_suggested"})
        self.assertEqual(
            [c.relationship_type for c in valid],
            ["reminds_me_of", "similar_style", "reminds_me_of"],
        )

    def test_loose_artifact_values_coerced(self):
        valid = validate_records(
            [{"title": "Motomami", "type": "Record", "year": "2022", "context": "x" * 300, "confidence": 0.9}],
            ExtractedArtifact,
        )
        artifact = valid[0]
        self.assertEqual(artifact.type, "other")
        self.assertEqual(artifact.year, 2022)
        self.assertEqual(len(artifact.context), 120)


if __name__ == '__main__':
    unittest.main()

"""
Tests for Hotlist Plate Checks

Tests the injected flagged-plate lookup, manual checks, the OCR-to-hotlist
path and plate reports.
"""

import json

import pytest
import numpy as np

from identmatch.engine import check_plate, recognize_and_check
from identmatch.errors import OcrInvocationError
from identmatch.plates.hotlist import DEFAULT_REASON, Hotlist
from identmatch.plates.plate_ocr import OcrEngine
from identmatch.schemas import OcrOutput, OcrWord


class FixedEngine(OcrEngine):
    """Always reads the same text"""

    def __init__(self, text, confidence=85.0):
        self.text = text
        self.confidence = confidence

    def recognize(self, image, language, options, timeout=None):
        words = tuple(OcrWord(w, self.confidence) for w in self.text.split())
        return OcrOutput(text=self.text, confidence=self.confidence, words=words)


class BrokenEngine(OcrEngine):
    def recognize(self, image, language, options, timeout=None):
        raise OcrInvocationError("no text")


@pytest.fixture
def hotlist():
    return Hotlist({"ABC-123": "Stolen vehicle", "XYZ 789": "Wanted"})


@pytest.fixture
def image():
    return np.full((40, 160, 3), 220, dtype=np.uint8)


class TestHotlist:
    """Test flagged-plate lookup"""

    def test_lookup_normalizes(self, hotlist):
        """Lookups ignore case and separators"""
        assert hotlist.lookup("abc 123") == "Stolen vehicle"
        assert hotlist.lookup("XYZ-789") == "Wanted"
        assert hotlist.lookup("xyz789") == "Wanted"
        assert "ABC-123" in hotlist
        assert len(hotlist) == 2

    def test_not_flagged(self, hotlist):
        """Unknown plates are not flagged"""
        assert hotlist.lookup("DEF-456") is None
        assert hotlist.lookup("") is None

    def test_from_iterable(self):
        """Plain plate sets get the default reason"""
        hotlist = Hotlist({"DEF-456"})
        assert hotlist.lookup("DEF 456") == DEFAULT_REASON

    def test_empty_hotlist(self):
        """Nothing is flagged by default"""
        assert Hotlist().lookup("ABC-123") is None

    def test_fuzzy_lookup(self):
        """Edit distance tolerance catches single OCR errors"""
        exact = Hotlist({"ABC-123": "Stolen vehicle"})
        fuzzy = Hotlist({"ABC-123": "Stolen vehicle"}, max_edit_distance=1)

        assert exact.lookup("ABC-128") is None
        assert fuzzy.lookup("ABC-128") == "Stolen vehicle"
        assert fuzzy.lookup("ABC 123") == "Stolen vehicle"
        assert fuzzy.lookup("XBC-128") is None

    def test_fuzzy_prefers_closest(self):
        """The nearest flagged plate wins"""
        hotlist = Hotlist({"ABC-124": "Far", "ABC-123": "Near"}, max_edit_distance=2)
        assert hotlist.lookup("ABD-123") == "Near"

    def test_add_and_remove(self, hotlist):
        """Entries can be added and removed"""
        hotlist.add("new 001", "Unpaid fines")
        assert hotlist.lookup("NEW-001") == "Unpaid fines"

        assert hotlist.remove("new-001")
        assert not hotlist.remove("new-001")
        assert hotlist.lookup("NEW-001") is None

    def test_unusable_plate_rejected(self):
        """Plates with no usable characters are rejected"""
        with pytest.raises(ValueError):
            Hotlist({"!!!": "bad"})

    def test_load_jsonl(self, tmp_path):
        """Inactive entries are skipped"""
        path = tmp_path / "hotlist.jsonl"
        lines = [
            {"plate": "ABC 123", "reason": "Stolen vehicle"},
            {"plate": "OLD 999", "reason": "Recovered", "active": False},
            {"plate": "DEF-456"},
        ]
        path.write_text("\n".join(json.dumps(line) for line in lines) + "\n\n")

        hotlist = Hotlist.load_jsonl(str(path))

        assert len(hotlist) == 2
        assert hotlist.lookup("ABC-123") == "Stolen vehicle"
        assert hotlist.lookup("OLD-999") is None
        assert hotlist.lookup("DEF-456") == DEFAULT_REASON

    def test_load_jsonl_malformed(self, tmp_path):
        """Malformed lines raise ValueError"""
        path = tmp_path / "hotlist.jsonl"
        path.write_text("{not json}\n")

        with pytest.raises(ValueError):
            Hotlist.load_jsonl(str(path))


class TestCheckPlate:
    """Test manual plate checks"""

    def test_flagged(self, hotlist):
        """Typed plates are normalized and flagged"""
        check = check_plate("abc 123", hotlist)
        assert check.plate == "ABC-123"
        assert check.flagged
        assert check.reason == "Stolen vehicle"
        assert check.confidence == 100
        assert check.source == "manual"

    def test_clear(self, hotlist):
        """Unlisted plates are clear"""
        check = check_plate("DEF 456", hotlist)

        assert not check.flagged
        assert check.reason is None

    def test_without_hotlist(self):
        """No hotlist means nothing is flagged"""
        assert not check_plate("ABC-123").flagged

    def test_empty_text(self, hotlist):
        """Unusable text yields no plate"""
        check = check_plate("  ", hotlist)

        assert check.plate is None
        assert check.confidence == 0
        assert not check.flagged

    def test_report(self, hotlist):
        """Reports carry a generation timestamp"""
        report = check_plate("ABC-123", hotlist).to_report()

        assert report["plate"] == "ABC-123"
        assert report["flagged"] is True
        assert "generated_at" in report
        json.dumps(report)


class TestRecognizeAndCheck:
    """Test OCR path into the hotlist"""

    def test_recognized_and_flagged(self, hotlist, image):
        """OCR plate is checked against the hotlist"""
        check = recognize_and_check(image, FixedEngine("XYZ 789", confidence=91.0), hotlist)

        assert check.plate == "XYZ-789"
        assert check.confidence == 91
        assert check.flagged
        assert check.reason == "Wanted"
        assert check.source == "ocr"

    def test_recognized_and_clear(self, hotlist, image):
        """Unlisted OCR plates are clear"""
        check = recognize_and_check(image, FixedEngine("KLM 321"), hotlist)

        assert check.plate == "KLM-321"
        assert not check.flagged

    def test_no_candidate_is_never_invented(self, hotlist, image):
        """Failed OCR gives no plate, repeatably, and is never flagged"""
        first = recognize_and_check(image, BrokenEngine(), hotlist)
        second = recognize_and_check(image, BrokenEngine(), hotlist)

        assert first.plate is None
        assert first.confidence == 0
        assert not first.flagged
        assert first == second

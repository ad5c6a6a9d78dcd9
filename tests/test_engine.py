"""
Tests for IdentMatch Engine

Tests the face identification entry point, configuration loading and the
command-line tool.
"""

import json
from dataclasses import fields

import pytest
import numpy as np
import cv2
import pytesseract

from identmatch import cli
from identmatch.config import DEFAULT_CONFIG, MatchConfig
from identmatch.engine import identify_face
from identmatch.errors import DecodeError
from identmatch.gallery.fingerprint import FingerprintEngine
from identmatch.gallery.gallery_store import GalleryStore
from identmatch.gallery.matcher import GalleryMatcher
from identmatch.schemas import GalleryEntry


def split_image(vertical: bool) -> np.ndarray:
    image = np.full((48, 48, 3), 30, dtype=np.uint8)
    if vertical:
        image[:, 24:] = 220
    else:
        image[24:] = 220
    return image


def ring_image() -> np.ndarray:
    image = np.full((48, 48, 3), 30, dtype=np.uint8)
    cv2.circle(image, (24, 24), 14, (220, 220, 220), 6)
    return image


@pytest.fixture
def store():
    store = GalleryStore()
    store.enroll("1", split_image(vertical=True), label="Vertical")
    store.enroll("2", split_image(vertical=False), label="Horizontal")
    store.enroll("3", ring_image(), label="Ring")
    return store


class TestIdentifyFace:
    """Test fingerprint + match pipeline"""

    def test_identifies_enrolled_image(self, store):
        """A reference image matches itself with confidence 100"""
        result = identify_face(split_image(vertical=False), store)

        assert result.identity == "2"
        assert result.confidence == 100
        assert result.distance == 0

    def test_accepts_entry_sequence(self, store):
        """Plain entry sequences work as galleries"""
        result = identify_face(ring_image(), list(store.entries()))
        assert result.identity == "3"

    def test_empty_gallery(self):
        """Empty gallery is a no-match"""
        result = identify_face(ring_image(), GalleryStore())

        assert not result.matched
        assert result.confidence == 0

    def test_strict_matcher(self, store):
        """An injected matcher's thresholds apply"""
        image = split_image(vertical=True)
        image[:6, :6] = 220  # perturb one corner cell

        strict = GalleryMatcher(max_distance=0, min_confidence=100)
        result = identify_face(image, store, matcher=strict)

        assert result.distance > 0
        assert not result.matched
        assert result.nearest.identity == "1"

    def test_undecodable_query(self, store):
        """Bad query bytes raise DecodeError"""
        with pytest.raises(DecodeError):
            identify_face(b"\x89PNG broken", store)


class TestMatchConfig:
    """Test configuration"""

    def test_defaults(self):
        """Defaults follow the 8x8 calibration"""
        config = MatchConfig()

        assert config.grid_size == 8
        assert config.confidence_slope == 2.5
        assert config.max_distance == 10
        assert config.min_confidence == 70
        assert config.variants == ("original", "contrast", "binary")
        assert DEFAULT_CONFIG == config

    def test_from_env(self, monkeypatch):
        """Environment overrides defaults"""
        monkeypatch.setenv("IDENTMATCH_GRID_SIZE", "16")
        monkeypatch.setenv("IDENTMATCH_MAX_DISTANCE", "40")
        monkeypatch.setenv("IDENTMATCH_VARIANTS", "binary, adaptive")

        config = MatchConfig.from_env()

        assert config.grid_size == 16
        assert config.max_distance == 40
        assert config.variants == ("binary", "adaptive")
        assert config.min_confidence == 70

    def test_from_env_pass_confidence(self, monkeypatch):
        """Pass-confidence clamp and default come from the environment"""
        monkeypatch.setenv("IDENTMATCH_MIN_PASS_CONFIDENCE", "40")
        monkeypatch.setenv("IDENTMATCH_MAX_PASS_CONFIDENCE", "95")
        monkeypatch.setenv("IDENTMATCH_DEFAULT_OCR_CONFIDENCE", "75")

        config = MatchConfig.from_env()

        assert config.min_pass_confidence == 40
        assert config.max_pass_confidence == 95
        assert config.default_ocr_confidence == 75

    def test_from_env_covers_every_field(self, monkeypatch):
        """Every field has an IDENTMATCH_* variable"""
        names = {
            "ocr_timeout_seconds": "IDENTMATCH_OCR_TIMEOUT",
        }
        read = []
        monkeypatch.setattr(
            "identmatch.config.os.getenv",
            lambda name, default=None: read.append(name) or default,
        )

        MatchConfig.from_env()

        for field in fields(MatchConfig):
            assert names.get(field.name, f"IDENTMATCH_{field.name.upper()}") in read

    def test_from_file(self, tmp_path):
        """JSON files override defaults"""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"min_confidence": 85, "variants": ["original"]}))

        config = MatchConfig.from_file(str(path))

        assert config.min_confidence == 85
        assert config.variants == ("original",)

    def test_unknown_key(self, tmp_path):
        """Unknown keys are rejected"""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"threshold": 3}))

        with pytest.raises(ValueError, match="threshold"):
            MatchConfig.from_file(str(path))

    @pytest.mark.parametrize("overrides", [
        {"grid_size": 1},
        {"resample": "cubic"},
        {"min_confidence": 101},
        {"top_k": 0},
        {"variants": ()},
        {"variants": ("original", "sepia")},
        {"min_pass_confidence": 90, "max_pass_confidence": 80},
    ])
    def test_invalid_values(self, overrides):
        """Invalid settings fail fast"""
        with pytest.raises(ValueError):
            MatchConfig(**overrides)

    def test_to_dict_round_trip(self):
        """to_dict output loads back"""
        config = MatchConfig(grid_size=16, top_k=5)
        assert MatchConfig.from_dict(config.to_dict()) == config


class TestCli:
    """Test command-line tool"""

    def test_fingerprint(self, tmp_path, capsys):
        """Prints hex fingerprints"""
        path = tmp_path / "face.png"
        cv2.imwrite(str(path), split_image(vertical=False))

        assert cli.main(["fingerprint", str(path)]) == 0
        out = capsys.readouterr().out
        assert out.startswith("00000000ffffffff")

    def test_match_with_references(self, tmp_path, capsys):
        """References are enrolled and matched"""
        query = tmp_path / "query.png"
        reference = tmp_path / "ref.png"
        cv2.imwrite(str(query), ring_image())
        cv2.imwrite(str(reference), ring_image())

        code = cli.main(["match", str(query), "--reference", f"suspect={reference}"])

        assert code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["identity"] == "suspect"
        assert data["confidence"] == 100

    def test_check_flagged(self, tmp_path, capsys):
        """Flagged plates exit with status 2"""
        hotlist = tmp_path / "hotlist.jsonl"
        hotlist.write_text(json.dumps({"plate": "ABC-123", "reason": "Stolen vehicle"}) + "\n")

        code = cli.main(["check", "abc 123", "--hotlist", str(hotlist)])

        assert code == 2
        data = json.loads(capsys.readouterr().out)
        assert data["flagged"] is True
        assert data["reason"] == "Stolen vehicle"

    def test_check_clear(self, capsys):
        """Clear plates exit with status 0"""
        assert cli.main(["check", "DEF 456"]) == 0
        assert json.loads(capsys.readouterr().out)["flagged"] is False

    def test_bad_image(self, tmp_path, capsys):
        """Decode errors are reported, not raised"""
        path = tmp_path / "broken.png"
        path.write_bytes(b"broken")

        assert cli.main(["fingerprint", str(path)]) == 3
        assert "Error" in capsys.readouterr().err

    def test_fingerprint_odd_grid(self, tmp_path, capsys):
        """Bit length is printed so odd-grid hex can be read back"""
        config = tmp_path / "config.json"
        config.write_text(json.dumps({"grid_size": 7}))
        path = tmp_path / "face.png"
        cv2.imwrite(str(path), ring_image())

        assert cli.main(["--config", str(config), "fingerprint", str(path)]) == 0
        hex_value, bits, printed_path = capsys.readouterr().out.split()

        assert bits == "49"
        assert printed_path == str(path)
        entry = GalleryEntry.from_dict({"identity": "x", "fingerprint": hex_value, "bits": int(bits)})
        assert entry.fingerprint == FingerprintEngine(grid_size=7).fingerprint(ring_image())

    def test_plate_flagged(self, tmp_path, capsys, monkeypatch):
        """A flagged OCR plate exits with status 2"""
        def fake_image_to_data(image, lang, config, timeout, output_type):
            return {"text": ["ABC", "123"], "conf": [91, 89]}

        monkeypatch.setattr(pytesseract, "image_to_data", fake_image_to_data)
        image = tmp_path / "car.png"
        cv2.imwrite(str(image), np.full((40, 160, 3), 220, dtype=np.uint8))
        hotlist = tmp_path / "hotlist.jsonl"
        hotlist.write_text(json.dumps({"plate": "ABC-123", "reason": "Stolen vehicle"}) + "\n")

        code = cli.main(["plate", str(image), "--hotlist", str(hotlist)])

        assert code == 2
        data = json.loads(capsys.readouterr().out)
        assert data["plate"] == "ABC-123"
        assert data["confidence"] == 90
        assert data["flagged"] is True

    def test_plate_clear(self, tmp_path, capsys, monkeypatch):
        """An unlisted OCR plate exits with status 0"""
        def fake_image_to_data(image, lang, config, timeout, output_type):
            return {"text": ["DEF", "456"], "conf": [80, 80]}

        monkeypatch.setattr(pytesseract, "image_to_data", fake_image_to_data)
        image = tmp_path / "car.png"
        cv2.imwrite(str(image), np.full((40, 160, 3), 220, dtype=np.uint8))

        assert cli.main(["plate", str(image)]) == 0
        assert json.loads(capsys.readouterr().out)["flagged"] is False

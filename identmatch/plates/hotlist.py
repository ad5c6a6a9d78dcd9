"""
Flagged Plate Lookup

Injected hotlist of flagged plates (stolen, wanted, ...). Callers supply
the entries; nothing is hard-coded here.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Union

from identmatch.plates.normalize import levenshtein_distance, normalize_plate


logger = logging.getLogger(__name__)

DEFAULT_REASON = "Flagged"


def plate_key(plate: str) -> str:
    """Normalized plate without separators"""
    return normalize_plate(plate).replace("-", "")


class Hotlist:
    """
    Plate -> reason lookup keyed by normalized plate without separators,
    so "ABC-123", "abc 123" and "ABC123" are the same plate.

    Exact lookups by default; max_edit_distance > 0 also reports plates
    within that many single-character OCR errors.
    """

    def __init__(
        self,
        plates: Union[Mapping[str, str], Iterable[str]] = (),
        max_edit_distance: int = 0
    ):
        """
        Args:
            plates: Mapping of plate -> reason, or an iterable of plates
            max_edit_distance: Edit distance tolerated for a fuzzy hit
        """
        if max_edit_distance < 0:
            raise ValueError(f"max_edit_distance must be >= 0, got {max_edit_distance}")

        self.max_edit_distance = max_edit_distance
        self._entries: Dict[str, str] = {}

        items = plates.items() if isinstance(plates, Mapping) else ((p, DEFAULT_REASON) for p in plates)
        for plate, reason in items:
            self.add(plate, reason)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, plate: str) -> bool:
        return self.lookup(plate) is not None

    def add(self, plate: str, reason: str = DEFAULT_REASON) -> None:
        key = plate_key(plate)
        if not key:
            raise ValueError(f"not a usable plate: {plate!r}")
        self._entries[key] = reason

    def remove(self, plate: str) -> bool:
        return self._entries.pop(plate_key(plate), None) is not None

    def lookup(self, plate: str) -> Optional[str]:
        """
        Reason the plate is flagged, or None.

        Args:
            plate: Plate text (normalized before lookup)
        """
        bare = plate_key(plate)
        if not bare:
            return None

        reason = self._entries.get(bare)
        if reason is not None or self.max_edit_distance == 0:
            return reason

        best = None
        for flagged in self._entries:
            distance = levenshtein_distance(bare, flagged)
            if distance <= self.max_edit_distance and (best is None or distance < best[0]):
                best = (distance, flagged)

        if best is None:
            return None

        logger.debug("Fuzzy hotlist hit %s ~ %s", bare, best[1])
        return self._entries[best[1]]

    @classmethod
    def load_jsonl(cls, path: str, max_edit_distance: int = 0) -> "Hotlist":
        """
        Load entries from a JSONL file of {"plate": ..., "reason": ...} lines.

        Lines whose "active" field is false are skipped.
        """
        hotlist = cls(max_edit_distance=max_edit_distance)

        with open(Path(path), "r") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue

                try:
                    data = json.loads(line)
                    if data.get("active", True):
                        hotlist.add(data["plate"], data.get("reason") or DEFAULT_REASON)
                except (KeyError, TypeError, ValueError) as e:
                    raise ValueError(f"{path}:{line_no}: invalid hotlist entry: {e}") from e

        logger.info("Loaded %d hotlist plates from %s", len(hotlist), path)
        return hotlist

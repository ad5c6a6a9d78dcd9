"""
Gallery Store

In-memory gallery provider. Hands matchers an immutable snapshot of
reference entries; never writes records anywhere.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from identmatch.errors import DecodeError
from identmatch.gallery.fingerprint import FingerprintEngine, ImageSource
from identmatch.schemas import GalleryEntry


logger = logging.getLogger(__name__)


class GalleryStore:
    """
    Ordered collection of gallery entries.

    Insertion order is the canonical order used for tie-breaks. Adding an
    identity that already exists replaces its fingerprint in place.
    """

    def __init__(
        self,
        entries: Iterable[GalleryEntry] = (),
        engine: Optional[FingerprintEngine] = None
    ):
        self.engine = engine or FingerprintEngine()
        self._entries: List[GalleryEntry] = []
        self._positions: Dict[Any, int] = {}

        for entry in entries:
            self.add(entry)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, identity: Any) -> bool:
        return identity in self._positions

    def add(self, entry: GalleryEntry) -> None:
        """
        Add or replace an entry.

        Args:
            entry: GalleryEntry with a non-None identity
        """
        if entry.identity is None:
            raise ValueError("gallery identity must not be None")

        position = self._positions.get(entry.identity)
        if position is None:
            self._positions[entry.identity] = len(self._entries)
            self._entries.append(entry)
        else:
            self._entries[position] = entry

    def enroll(
        self,
        identity: Any,
        image: ImageSource,
        label: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> GalleryEntry:
        """
        Fingerprint a reference image and add it to the gallery.

        Raises:
            DecodeError: If the image cannot be decoded
        """
        entry = GalleryEntry(
            identity=identity,
            fingerprint=self.engine.fingerprint(image),
            label=label,
            metadata=metadata or {},
        )
        self.add(entry)
        logger.info("Enrolled %r (%s)", identity, entry.fingerprint.to_hex())
        return entry

    def enroll_many(
        self,
        references: Iterable[Tuple[Any, ImageSource, Optional[str]]]
    ) -> List[GalleryEntry]:
        """
        Enroll (identity, image, label) triples.

        References whose image cannot be decoded are skipped.

        Returns:
            Entries that were enrolled
        """
        enrolled = []
        for identity, image, label in references:
            try:
                enrolled.append(self.enroll(identity, image, label=label))
            except DecodeError as e:
                logger.warning("Skipping %r: %s", identity, e)
        return enrolled

    def get(self, identity: Any) -> Optional[GalleryEntry]:
        position = self._positions.get(identity)
        return None if position is None else self._entries[position]

    def remove(self, identity: Any) -> bool:
        """Remove an entry; later entries keep their relative order"""
        if identity not in self._positions:
            return False

        del self._entries[self._positions[identity]]
        self._positions = {e.identity: i for i, e in enumerate(self._entries)}
        return True

    def entries(self) -> Tuple[GalleryEntry, ...]:
        """Immutable snapshot in canonical order"""
        return tuple(self._entries)

    @classmethod
    def load_jsonl(
        cls,
        path: str,
        engine: Optional[FingerprintEngine] = None
    ) -> "GalleryStore":
        """
        Load pre-computed entries from a JSONL file.

        Each line: {"identity": ..., "fingerprint": "<hex or bits>", "bits": 64, "label": ...}

        Raises:
            ValueError: On a malformed line (with its line number)
        """
        store = cls(engine=engine)

        with open(Path(path), "r") as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue

                try:
                    store.add(GalleryEntry.from_dict(json.loads(line)))
                except (KeyError, TypeError, ValueError) as e:
                    raise ValueError(f"{path}:{line_no}: invalid gallery entry: {e}") from e

        logger.info("Loaded %d gallery entries from %s", len(store), path)
        return store

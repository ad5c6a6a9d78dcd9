"""
License Plate Normalization

Extracts plate-shaped substrings from raw OCR text and normalizes them
for consistent matching.
"""

import re
from typing import Dict, List, Optional, Sequence, Tuple


# Applied in order; every match from every pattern is a candidate
PLATE_PATTERNS: List[Tuple[str, "re.Pattern[str]"]] = [
    ("structural", re.compile(r"[A-Z]{2,3}[- ]?[0-9]{3,4}")),   # ABC-1234, AB 123
    ("generic", re.compile(r"[A-Z0-9]{2,4}[- ]?[A-Z0-9]{2,4}")),  # two alphanumeric blocks
]

_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^A-Z0-9 \-]")
_SEPARATORS = re.compile(r"[\s\-]+")

# A single space inside a letter run, e.g. "AB C-123" read off a plate
_SPLIT_LETTERS = re.compile(r"(?<=[A-Z]) (?=[A-Z])")


def clean_text(raw_text: str) -> str:
    """
    Upper-case and strip everything outside [A-Z0-9 -].

    Line breaks and other whitespace become single spaces.
    """
    if not raw_text:
        return ""
    text = _WHITESPACE.sub(" ", raw_text.upper())
    return _DISALLOWED.sub("", text)


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def normalize_plate(plate_text: str) -> str:
    """
    Normalize plate text to its canonical form.

    Steps:
    1. Convert to uppercase
    2. Remove characters outside [A-Z0-9 -]
    3. Join the remaining blocks with single hyphens

    Examples: "abc 123" -> "ABC-123", "N - 12345 - W" -> "N-12345-W".
    Normalizing an already-normalized plate returns it unchanged.

    Args:
        plate_text: Raw or candidate plate text

    Returns:
        Normalized plate string ("" if nothing usable remains)
    """
    blocks = [b for b in _SEPARATORS.split(clean_text(plate_text)) if b]
    return "-".join(blocks)


def plate_blocks(plate_text: str) -> List[str]:
    """Alphanumeric blocks of a plate, e.g. "ABC-123" -> ["ABC", "123"]"""
    return [b for b in _SEPARATORS.split(clean_text(plate_text)) if b]


class PlateCandidateExtractor:
    """
    Finds plate-like substrings in OCR text.

    Matches from all patterns are pooled and ranked by descending
    length; equal lengths keep their first appearance.
    """

    def __init__(
        self,
        patterns: Optional[Sequence[Tuple[str, "re.Pattern[str]"]]] = None,
        join_split_letters: bool = True
    ):
        """
        Args:
            patterns: (name, compiled regex) pairs, most specific first
            join_split_letters: Also scan text with spaces inside letter runs removed
        """
        self.patterns = list(patterns) if patterns is not None else list(PLATE_PATTERNS)
        self.join_split_letters = join_split_letters

    def _texts(self, cleaned: str) -> List[str]:
        texts = [cleaned]
        if self.join_split_letters:
            joined = _SPLIT_LETTERS.sub("", cleaned)
            if joined != cleaned:
                texts.append(joined)
        return texts

    def extract(self, raw_text: str) -> List[str]:
        """
        Extract ranked plate candidates.

        Args:
            raw_text: Raw OCR text

        Returns:
            Distinct candidates (whitespace collapsed), most plausible first;
            empty if nothing plate-like was found
        """
        cleaned = clean_text(raw_text)
        if not cleaned.strip():
            return []

        # candidate -> first-seen order
        found: Dict[str, int] = {}

        for _, pattern in self.patterns:
            for text in self._texts(cleaned):
                for match in pattern.finditer(text):
                    candidate = collapse_whitespace(match.group(0))
                    if candidate and candidate not in found:
                        found[candidate] = len(found)

        return sorted(found, key=lambda c: (-len(c), found[c]))


def extract_candidates(raw_text: str) -> List[str]:
    """Extract ranked plate candidates with the default patterns"""
    return PlateCandidateExtractor().extract(raw_text)


def levenshtein_distance(s1: str, s2: str) -> int:
    """
    Calculate Levenshtein (edit) distance between two strings.

    Args:
        s1: First string
        s2: Second string

    Returns:
        Edit distance (number of single-character edits)
    """
    if len(s1) < len(s2):
        return levenshtein_distance(s2, s1)

    if not s2:
        return len(s1)

    previous_row = list(range(len(s2) + 1))

    for i, c1 in enumerate(s1):
        current_row = [i + 1]
        for j, c2 in enumerate(s2):
            insertions = previous_row[j + 1] + 1
            deletions = current_row[j] + 1
            substitutions = previous_row[j] + (c1 != c2)
            current_row.append(min(insertions, deletions, substitutions))
        previous_row = current_row

    return previous_row[-1]

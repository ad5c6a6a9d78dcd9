"""
IdentMatch Gallery

Perceptual fingerprints and nearest-neighbour matching against a
reference gallery. Matches are similarity judgments, never identity claims.
"""

from identmatch.gallery.fingerprint import FingerprintEngine, average_hash, decode_image
from identmatch.gallery.distance import hamming_distance, distance_to_confidence
from identmatch.gallery.matcher import GalleryMatcher, LinearSearch, ParallelSearch, SearchStrategy
from identmatch.gallery.gallery_store import GalleryStore

__all__ = [
    'FingerprintEngine',
    'average_hash',
    'decode_image',
    'hamming_distance',
    'distance_to_confidence',
    'GalleryMatcher',
    'SearchStrategy',
    'LinearSearch',
    'ParallelSearch',
    'GalleryStore',
]

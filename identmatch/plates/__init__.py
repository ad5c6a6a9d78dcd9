"""
IdentMatch License Plate Recognition

Plate candidate extraction, multi-pass OCR fusion and hotlist lookup.
"""

from identmatch.plates.normalize import PlateCandidateExtractor, extract_candidates, normalize_plate
from identmatch.plates.plate_ocr import OcrEngine, TesseractEngine, EasyOcrEngine
from identmatch.plates.fusion import MultiPassFuser, pass_confidence
from identmatch.plates.hotlist import Hotlist

__all__ = [
    'PlateCandidateExtractor',
    'extract_candidates',
    'normalize_plate',
    'OcrEngine',
    'TesseractEngine',
    'EasyOcrEngine',
    'MultiPassFuser',
    'pass_confidence',
    'Hotlist',
]

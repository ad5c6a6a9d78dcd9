"""
IdentMatch CLI

Command-line tool to fingerprint images, match them against a gallery,
and read and check license plates.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from identmatch.config import MatchConfig
from identmatch.engine import check_plate, identify_face, recognize_and_check
from identmatch.errors import IdentMatchError
from identmatch.gallery.fingerprint import FingerprintEngine
from identmatch.gallery.gallery_store import GalleryStore
from identmatch.plates.hotlist import Hotlist
from identmatch.plates.plate_ocr import EasyOcrEngine, OcrEngine, TesseractEngine


def _load_config(args: argparse.Namespace) -> MatchConfig:
    if args.config:
        return MatchConfig.from_file(args.config)
    return MatchConfig.from_env()


def _load_hotlist(path: Optional[str], fuzzy: int) -> Optional[Hotlist]:
    return Hotlist.load_jsonl(path, max_edit_distance=fuzzy) if path else None


def _ocr_engine(name: str, config: MatchConfig) -> OcrEngine:
    if name == "easyocr":
        return EasyOcrEngine(language=config.ocr_language)
    return TesseractEngine()


def _emit(data: dict) -> None:
    print(json.dumps(data, indent=2, default=str))


def cmd_fingerprint(args: argparse.Namespace, config: MatchConfig) -> int:
    engine = FingerprintEngine.from_config(config)
    for path in args.images:
        fingerprint = engine.fingerprint(path)
        print(f"{fingerprint.to_hex()}  {len(fingerprint)}  {path}")
    return 0


def cmd_match(args: argparse.Namespace, config: MatchConfig) -> int:
    engine = FingerprintEngine.from_config(config)
    gallery = GalleryStore.load_jsonl(args.gallery, engine=engine) if args.gallery else GalleryStore(engine=engine)

    for reference in args.reference or []:
        identity, sep, path = reference.partition("=")
        if not sep:
            raise ValueError(f"--reference must be ID=PATH, got {reference!r}")
        gallery.enroll(identity, path, label=identity)

    result = identify_face(args.image, gallery, config=config, engine=engine)
    _emit(result.to_dict())
    return 0 if result.matched else 1


def cmd_plate(args: argparse.Namespace, config: MatchConfig) -> int:
    hotlist = _load_hotlist(args.hotlist, args.fuzzy)
    check = recognize_and_check(
        args.image,
        _ocr_engine(args.engine, config),
        hotlist=hotlist,
        config=config,
        concurrent=args.concurrent,
    )
    _emit(check.to_report())
    if check.flagged:
        return 2
    return 0 if check.plate else 1


def cmd_check(args: argparse.Namespace, config: MatchConfig) -> int:
    hotlist = _load_hotlist(args.hotlist, args.fuzzy)
    check = check_plate(args.plate, hotlist)
    _emit(check.to_report())
    return 2 if check.flagged else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="identmatch",
        description="Fingerprint matching and license plate recognition"
    )
    parser.add_argument("--config", help="JSON config file (default: IDENTMATCH_* environment)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("fingerprint", help="Print image fingerprints as hex with their bit length")
    p.add_argument("images", nargs="+", help="Image files")
    p.set_defaults(func=cmd_fingerprint)

    p = sub.add_parser("match", help="Match a face image against a gallery")
    p.add_argument("image", help="Query image")
    p.add_argument("--gallery", help="Gallery JSONL file")
    p.add_argument("--reference", action="append", metavar="ID=PATH", help="Reference image (repeatable)")
    p.set_defaults(func=cmd_match)

    p = sub.add_parser("plate", help="Read a plate from an image and check the hotlist")
    p.add_argument("image", help="Vehicle or plate image")
    p.add_argument("--engine", choices=["tesseract", "easyocr"], default="tesseract")
    p.add_argument("--hotlist", help="Hotlist JSONL file")
    p.add_argument("--fuzzy", type=int, default=0, help="Hotlist edit distance tolerance")
    p.add_argument("--concurrent", action="store_true", help="Run OCR passes in parallel")
    p.set_defaults(func=cmd_plate)

    p = sub.add_parser("check", help="Check a typed plate against the hotlist")
    p.add_argument("plate", help="Plate number")
    p.add_argument("--hotlist", help="Hotlist JSONL file")
    p.add_argument("--fuzzy", type=int, default=0, help="Hotlist edit distance tolerance")
    p.set_defaults(func=cmd_check)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    try:
        config = _load_config(args)
        return args.func(args, config)
    except (IdentMatchError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 3


if __name__ == "__main__":
    sys.exit(main())

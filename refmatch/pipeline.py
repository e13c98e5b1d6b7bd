from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

load_dotenv()

from .dynamo.items_repo import ItemsRepo
from .dynamo.tables import ensure_tables
from .isbn import IsbnCleaner
from .logging_setup import get_logger
from .matching.doi_disambiguation import summarize
from .matching.identifiers import (
    IdentifierKind,
    clean_doi,
    clean_isbn,
    clean_issn,
    extract_arxiv_id,
    extract_pmcid,
    extract_pmid,
)
from .models import record_from_dict
from .services import ServiceManager
from .urls import normalize_url

logger = get_logger(__name__)


def _load_record(args: argparse.Namespace, repo: ItemsRepo):
    if args.file:
        data = json.loads(Path(args.file).read_text(encoding="utf-8"))
        return record_from_dict(data)
    return repo.get_record(args.key)


def cmd_detect(args: argparse.Namespace) -> Dict[str, Any]:
    repo = ItemsRepo()
    record = _load_record(args, repo)
    if record is None:
        return {"error": f"record {args.key!r} not found"}
    with ServiceManager(repo) as mgr:
        valid = mgr.validator.validate_record(record)
        result = mgr.detector.detect_duplicates(record)
        out = result.to_dict()
        out["key"] = record.key
        out["valid"] = valid
        if args.warnings:
            out["warnings"] = [mgr.detector.flag_possible_duplicate(record, c) for c in result.candidates]
        return out


def cmd_find(args: argparse.Namespace) -> Dict[str, Any]:
    with ServiceManager(ItemsRepo()) as mgr:
        if args.url:
            found = mgr.detector.find_item_by_url(args.url)
        else:
            kind = IdentifierKind(args.kind.upper())
            found = mgr.detector.find_item_by_identifier(kind, args.value)
    return {"found": found is not None, "key": found.key if found else None, "title": found.title if found else None}


def cmd_disambiguate(args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if args.max_candidates is not None:
        overrides["max_candidates"] = args.max_candidates
    if args.min_score is not None:
        overrides["minimum_confidence_score"] = args.min_score
    with ServiceManager() as mgr:
        results = mgr.disambiguator.disambiguate(args.doi, args.title, **overrides)
        out = summarize(results)
        out["cache"] = mgr.crossref.cache_stats()
        return out


def cmd_normalize(args: argparse.Namespace) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    if args.doi is not None:
        out["doi"] = clean_doi(args.doi)
    if args.isbn is not None:
        out["isbn"] = clean_isbn(args.isbn, IsbnCleaner())
    if args.issn is not None:
        out["issn"] = clean_issn(args.issn)
    if args.url is not None:
        out["url"] = normalize_url(args.url)
    if args.text is not None:
        out["pmid"] = extract_pmid(args.text)
        out["pmcid"] = extract_pmcid(args.text)
        out["arxiv_id"] = extract_arxiv_id(args.text)
    return out


def cmd_init_tables(args: argparse.Namespace) -> Dict[str, Any]:
    return {"created": ensure_tables()}


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Duplicate detection and DOI disambiguation for library records")
    p.add_argument("--debug", action="store_true")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_detect = sub.add_parser("detect", help="Find likely duplicates of one record")
    g = p_detect.add_mutually_exclusive_group(required=True)
    g.add_argument("--file", help="JSON file holding the record")
    g.add_argument("--key", help="Key of a record already in the items table")
    p_detect.add_argument("--warnings", action="store_true", help="Include a warning per candidate")
    p_detect.set_defaults(func=cmd_detect)

    p_find = sub.add_parser("find", help="Look up an existing record by URL or identifier")
    g = p_find.add_mutually_exclusive_group(required=True)
    g.add_argument("--url")
    g.add_argument("--kind", choices=[k.value.lower() for k in IdentifierKind])
    p_find.add_argument("--value", default=None)
    p_find.set_defaults(func=cmd_find)

    p_dis = sub.add_parser("disambiguate", help="Rank candidate DOIs against a document title")
    p_dis.add_argument("--doi", action="append", required=True, help="Candidate DOI (repeatable)")
    p_dis.add_argument("--title", required=True)
    p_dis.add_argument("--max-candidates", type=int, default=None)
    p_dis.add_argument("--min-score", type=int, default=None)
    p_dis.set_defaults(func=cmd_disambiguate)

    p_norm = sub.add_parser("normalize", help="Normalize identifiers without touching storage")
    p_norm.add_argument("--doi", default=None)
    p_norm.add_argument("--isbn", default=None)
    p_norm.add_argument("--issn", default=None)
    p_norm.add_argument("--url", default=None)
    p_norm.add_argument("--text", default=None, help="Free text to scan for PMID/PMCID/arXiv ids")
    p_norm.set_defaults(func=cmd_normalize)

    p_init = sub.add_parser("init-tables", help="Create the items table if missing")
    p_init.set_defaults(func=cmd_init_tables)
    return p


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.cmd == "find" and args.kind and not args.value:
        parser.error("find --kind requires --value")

    if args.debug:
        # each module logger carries its own level from get_logger
        for name in list(logging.root.manager.loggerDict):
            if name.startswith("refmatch"):
                logging.getLogger(name).setLevel(logging.DEBUG)
        logger.debug("Debug logging enabled")

    out = args.func(args)
    print(json.dumps(out, ensure_ascii=False, indent=2, default=str))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

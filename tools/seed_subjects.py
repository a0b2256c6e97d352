"""
============================================================================
FILE: seed_subjects.py
LOCATION: tools/seed_subjects.py
============================================================================

PURPOSE:
    Seed the subject catalogue from a JSON file and create the standard
    units for each subject through the create_subject_units function.

ROLE IN PROJECT:
    Setup script for a fresh Firebase project or the local mock backend.
    Can be re-run safely: a subject is matched on (name, branch,
    academic_year, semester) and updated in place instead of duplicated.

DEPENDENCIES:
    - firebase-admin
    - google-cloud-firestore
    - serviceAccountKey.json (Firebase credentials, real mode)

USAGE:
    python tools/seed_subjects.py tools/subjects.json
    python tools/seed_subjects.py tools/subjects.json --dry-run
    python tools/seed_subjects.py tools/subjects.json --mock
    python tools/seed_subjects.py tools/subjects.json --credentials key.json --id-token <admin token>
============================================================================
"""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core import exceptions

from api import config, rpc
from api.errors import RpcError
from api.models import MAX_SEMESTER, MAX_YEAR, MIN_SEMESTER, MIN_YEAR, utc_now_iso

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

DEFAULT_CREDENTIALS_PATH = config.PROJECT_ROOT / "serviceAccountKey.json"
MATCH_FIELDS = ("name", "branch", "academic_year", "semester")


def validate_subject(entry: Dict[str, Any]) -> Optional[str]:
    """Return an error message for an invalid entry, else None."""
    if not str(entry.get("name") or "").strip():
        return "missing name"
    if not str(entry.get("branch") or "").strip():
        return "missing branch"
    year = entry.get("academic_year")
    if not isinstance(year, int) or not MIN_YEAR <= year <= MAX_YEAR:
        return f"academic_year must be {MIN_YEAR}-{MAX_YEAR}"
    semester = entry.get("semester")
    if not isinstance(semester, int) or not MIN_SEMESTER <= semester <= MAX_SEMESTER:
        return f"semester must be {MIN_SEMESTER}-{MAX_SEMESTER}"
    return None


def load_subjects(path: Path) -> List[Dict[str, Any]]:
    with path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    if isinstance(data, dict):
        data = data.get("subjects", [])
    logger.info("Loaded %s subject entries from %s", len(data), path)
    return data


class SubjectSeeder:
    """Creates or updates subjects and their units."""

    def __init__(self, db, functions=None, dry_run: bool = False, id_token: Optional[str] = None,
                 create_units: bool = True) -> None:
        self.db = db
        self.functions = functions
        self.dry_run = dry_run
        self.id_token = id_token
        self.create_units = create_units
        self.stats = {"created": 0, "updated": 0, "skipped": 0, "errors": 0, "units": 0}

    def _find_existing(self, entry: Dict[str, Any]):
        query = self.db.collection("subjects")
        for field in MATCH_FIELDS:
            query = query.where(field, "==", entry[field])
        matches = list(query.limit(1).stream())
        return matches[0] if matches else None

    def seed_subject(self, entry: Dict[str, Any]) -> Optional[str]:
        error = validate_subject(entry)
        if error:
            logger.error("Skipping subject %r: %s", entry.get("name"), error)
            self.stats["errors"] += 1
            return None

        doc = {
            "name": entry["name"].strip(),
            "branch": entry["branch"].strip(),
            "academic_year": entry["academic_year"],
            "semester": entry["semester"],
            "is_common": bool(entry.get("is_common", False)),
        }
        existing = self._find_existing(doc)

        if existing is not None:
            current = existing.to_dict()
            if current.get("is_common") == doc["is_common"]:
                logger.info("Subject %s already up to date", doc["name"])
                self.stats["skipped"] += 1
            else:
                logger.info("Updating subject %s", doc["name"])
                if not self.dry_run:
                    existing.reference.update({"is_common": doc["is_common"]})
                self.stats["updated"] += 1
            subject_id = existing.id
        else:
            logger.info("Creating subject %s (%s, Year %s, Semester %s)",
                        doc["name"], doc["branch"], doc["academic_year"], doc["semester"])
            self.stats["created"] += 1
            if self.dry_run:
                return None
            _, ref = self.db.collection("subjects").add({**doc, "created_at": utc_now_iso()})
            subject_id = ref.id

        if self.create_units and not self.dry_run:
            self._seed_units(subject_id, doc["name"])
        return subject_id

    def _seed_units(self, subject_id: str, name: str) -> None:
        try:
            rpc.create_subject_units(subject_id, functions=self.functions, id_token=self.id_token)
        except RpcError as exc:
            logger.error("Could not create units for %s: %s", name, exc.message)
            self.stats["errors"] += 1
            return
        self.stats["units"] += 1

    def run(self, entries: List[Dict[str, Any]]) -> Dict[str, int]:
        if self.dry_run:
            logger.info("DRY RUN: no changes will be written")
        for entry in entries:
            try:
                self.seed_subject(entry)
            except exceptions.GoogleAPICallError as exc:
                logger.error("Firestore error for %s: %s", entry.get("name"), exc)
                self.stats["errors"] += 1
        logger.info("Seeding finished: %s", self.stats)
        return self.stats


def connect(args: argparse.Namespace):
    """Return (db, functions) for the selected backend."""
    if args.mock:
        from api.mock_firestore import get_mock_backend

        backend = get_mock_backend(os.getenv("MOCK_DB_FILE", config.MOCK_DB_FILE))
        return backend.db, backend.functions

    credentials_path = Path(args.credentials) if args.credentials else DEFAULT_CREDENTIALS_PATH
    if not credentials_path.exists():
        raise FileNotFoundError(f"Service account key not found: {credentials_path}")
    if not firebase_admin._apps:
        firebase_admin.initialize_app(credentials.Certificate(str(credentials_path)))
    logger.info("Firebase initialized successfully")
    return firestore.client(), rpc.FunctionsClient(config.FUNCTIONS_BASE_URL)


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""
    parser = argparse.ArgumentParser(description="Seed SemNotes subjects and units")
    parser.add_argument("file", help="JSON file with a list of subjects (or {\"subjects\": [...]})")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without making changes",
    )
    parser.add_argument("--credentials", help="Path to service account key JSON")
    parser.add_argument("--mock", action="store_true", help="Seed the local mock database instead")
    parser.add_argument("--id-token", help="Admin ID token for the create_subject_units function")
    parser.add_argument("--skip-units", action="store_true", help="Do not create units")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entrypoint."""
    args = build_parser().parse_args(argv)
    entries = load_subjects(Path(args.file))
    db, functions = connect(args)
    seeder = SubjectSeeder(
        db,
        functions=functions,
        dry_run=args.dry_run,
        id_token=args.id_token,
        create_units=not args.skip_units,
    )
    stats = seeder.run(entries)
    return 1 if stats["errors"] else 0


if __name__ == "__main__":
    sys.exit(main())

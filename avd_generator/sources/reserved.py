"""
reserved.py
-----------
Placeholder pages for CVE ids that MITRE has RESERVED but NVD has not published.

Input: MITRE CVE JSON 4.0 records, vuln-list/cvelist/<year>/**/CVE-*.json
    {"CVE_data_meta": {"ID": "CVE-2021-1234", "STATE": "RESERVED"},
     "description": {"description_data": [{"value": "** RESERVED ** ..."}]}}

A page is only written when none exists yet for that id, so a published NVD
page is never replaced and the first placeholder keeps its original date.
"""

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import partial
from pathlib import Path
from typing import Callable

from avd_generator.config import GeneratorConfig
from avd_generator.errors import MALFORMED_RECORD, RecordParseError
from avd_generator.files import get_all_files_recursive
from avd_generator.templates import render
from avd_generator.transform import PartitionResult, RecordTransformer, TransformStats, run_partitions

log = logging.getLogger(__name__)

RESERVED_STATE = "RESERVED"
_RESERVED_PREFIX = re.compile(r"^\*\*\s*RESERVED\s*\*\*\s*")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ReservedRecord:
    cve_id:      str
    state:       str
    description: str = ""

    @property
    def reserved(self) -> bool:
        return self.state.upper() == RESERVED_STATE


def parse_cvelist_file(path: Path) -> ReservedRecord:
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        meta   = data.get("CVE_data_meta") or {}
        values = [d.get("value") or "" for d in (data.get("description") or {}).get("description_data", []) or []]
        cve_id = str(meta.get("ID") or "")
        state  = str(meta.get("STATE") or "")
        description = _RESERVED_PREFIX.sub("", values[0]).strip() if values else ""
    except MALFORMED_RECORD as exc:
        raise RecordParseError(path, exc) from exc

    if not cve_id:
        raise RecordParseError(path, "no CVE_data_meta.ID")
    return ReservedRecord(cve_id=cve_id, state=state, description=description)


def reserved_transformer(clock: Clock = utc_now, progress: bool = False, name: str = "reserved") -> RecordTransformer:
    def render_reserved(record: ReservedRecord) -> str:
        return render("reserved", record=record, date=clock().strftime("%Y-%m-%d %H:%M:%S +0000"))

    return RecordTransformer(
        name         = name,
        parse        = parse_cvelist_file,
        render       = render_reserved,
        output_name  = lambda record: f"{record.cve_id}.md",
        should_write = lambda record, out_path: record.reserved and not out_path.exists(),
        progress     = progress,
    )


def generate_reserved_pages(year: str, cvelist_dir: Path, posts_dir: Path,
                            clock: Clock = utc_now, progress: bool = False) -> TransformStats:
    """Raises SourceListingError when cvelist_dir/<year> is missing."""
    log.info(f"Generating reserved pages for year: {year}")
    files = get_all_files_recursive(cvelist_dir / year, ".json")
    return reserved_transformer(clock, progress=progress, name=f"reserved/{year}").run(files, posts_dir)


def generate_all_reserved_pages(config: GeneratorConfig, clock: Clock = utc_now) -> list[PartitionResult]:
    """Every configured year, config.workers at a time."""
    jobs = {
        year: partial(generate_reserved_pages, year, config.cvelist_dir, config.nvd_posts_dir, clock)
        for year in config.years
    }
    return run_partitions(jobs, workers=config.workers, progress=config.progress, desc="Reserved years")

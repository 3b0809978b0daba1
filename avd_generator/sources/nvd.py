"""
nvd.py
------
NVD vulnerability pages: vuln-list/nvd/<year>/CVE-*.json → content/nvd/CVE-*.md

Two record layouts are understood, detected per file:

  NVD JSON 1.1 feed item
    {"cve": {"CVE_data_meta": {"ID"}, "problemtype": …, "references": {"reference_data"},
             "description": {"description_data"}},
     "impact": {"baseMetricV2": {"cvssV2"}, "baseMetricV3": {"cvssV3"}},
     "publishedDate": "2019-10-16T19:15Z", "lastModifiedDate": …}

  NVD API 2.0 item (optionally wrapped in {"cve": …})
    {"id", "published", "lastModified", "descriptions", "weaknesses",
     "references": [{"url"}], "metrics": {"cvssMetricV31" | "cvssMetricV30" | "cvssMetricV2"}}

Each year is one partition; the years run on a bounded thread pool.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial
from pathlib import Path
from typing import Optional

from avd_generator.config import GeneratorConfig
from avd_generator.errors import MALFORMED_RECORD, RecordParseError
from avd_generator.files import get_all_files_of_kind
from avd_generator.sources.cwe import Weakness, load_weakness
from avd_generator.templates import render
from avd_generator.transform import PartitionResult, RecordTransformer, TransformStats, run_partitions

log = logging.getLogger(__name__)

NVD_DATE_FORMATS = (
    "%Y-%m-%dT%H:%MZ",        # 1.1 feeds
    "%Y-%m-%dT%H:%M:%S.%f",   # API 2.0
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M:%SZ",
)
PAGE_DATE_FORMAT = "%Y-%m-%dT%H:%MZ"
FRONT_MATTER_DATE_FORMAT = "%Y-%m-%d %H:%M:%S +0000"

# Characters that break the generated front matter / markdown
_DESCRIPTION_STRIP = str.maketrans("", "", '"\\')
_REFERENCE_STRIP = str.maketrans("", "", '"')


@dataclass
class CVSS:
    v2_vector: str = ""
    v2_score:  float = 0.0
    v3_vector: str = ""
    v3_score:  float = 0.0


@dataclass
class Dates:
    published: str = ""
    modified:  str = ""


@dataclass
class Vulnerability:
    cve_id:      str
    description: str = ""
    cwe_id:      str = ""
    references:  list[str] = field(default_factory=list)
    cvss:        CVSS = field(default_factory=CVSS)
    dates:       Dates = field(default_factory=Dates)
    published:   Optional[datetime] = None
    weakness:    Weakness = field(default_factory=Weakness)

    @property
    def title(self) -> str:
        return self.cve_id

    @property
    def post_date(self) -> str:
        return self.published.strftime(FRONT_MATTER_DATE_FORMAT) if self.published else ""


# ── Field helpers ──────────────────────────────────────────────────────────────

def parse_nvd_date(value) -> Optional[datetime]:
    if not value or not isinstance(value, str):
        return None
    for fmt in NVD_DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def _format_date(value: Optional[datetime]) -> str:
    return value.strftime(PAGE_DATE_FORMAT) if value else ""


def _score(value) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def clean_description(text: str) -> str:
    return (text or "").translate(_DESCRIPTION_STRIP).strip()


def clean_reference(url: str) -> str:
    return (url or "").translate(_REFERENCE_STRIP).strip()


def _pick_description(items) -> str:
    items = [d for d in items or [] if isinstance(d, dict)]
    for d in items:
        if d.get("lang") == "en":
            return d.get("value", "")
    return items[0].get("value", "") if items else ""


# ── NVD JSON 1.1 ───────────────────────────────────────────────────────────────

def _parse_feed_item(data: dict) -> Vulnerability:
    cve    = data.get("cve") or {}
    cve_id = (cve.get("CVE_data_meta") or {}).get("ID", "")

    cwe_id = ""
    for pt in (cve.get("problemtype") or {}).get("problemtype_data", []) or []:
        values = [d.get("value", "") for d in pt.get("description", []) or []]
        if values:
            cwe_id = values[0]
            break

    impact = data.get("impact") or {}
    v2 = (impact.get("baseMetricV2") or {}).get("cvssV2") or {}
    v3 = (impact.get("baseMetricV3") or {}).get("cvssV3") or {}

    published = parse_nvd_date(data.get("publishedDate"))
    modified  = parse_nvd_date(data.get("lastModifiedDate"))

    return Vulnerability(
        cve_id      = cve_id,
        description = clean_description(_pick_description(
            (cve.get("description") or {}).get("description_data"))),
        cwe_id      = cwe_id,
        references  = [clean_reference(r.get("url", ""))
                       for r in (cve.get("references") or {}).get("reference_data", []) or []],
        cvss        = CVSS(
            v2_vector = v2.get("vectorString") or "",
            v2_score  = _score(v2.get("baseScore")),
            v3_vector = v3.get("vectorString") or "",
            v3_score  = _score(v3.get("baseScore")),
        ),
        dates       = Dates(published=_format_date(published), modified=_format_date(modified)),
        published   = published,
    )


# ── NVD API 2.0 ────────────────────────────────────────────────────────────────

def _first_metric(metrics: dict, keys) -> dict:
    for key in keys:
        entries = metrics.get(key) or []
        if entries:
            return entries[0].get("cvssData") or {}
    return {}


def _parse_api_item(cve: dict) -> Vulnerability:
    cwe_values = [
        d.get("value", "")
        for w in cve.get("weaknesses", []) or []
        for d in w.get("description", []) or []
    ]
    cwe_id = next((v for v in cwe_values if v.startswith("CWE-")), cwe_values[0] if cwe_values else "")

    metrics = cve.get("metrics") or {}
    v2 = _first_metric(metrics, ["cvssMetricV2"])
    v3 = _first_metric(metrics, ["cvssMetricV31", "cvssMetricV30"])

    published = parse_nvd_date(cve.get("published"))
    modified  = parse_nvd_date(cve.get("lastModified"))

    return Vulnerability(
        cve_id      = cve.get("id", ""),
        description = clean_description(_pick_description(cve.get("descriptions"))),
        cwe_id      = cwe_id,
        references  = [clean_reference(r.get("url", "")) for r in cve.get("references", []) or []],
        cvss        = CVSS(
            v2_vector = v2.get("vectorString") or "",
            v2_score  = _score(v2.get("baseScore")),
            v3_vector = v3.get("vectorString") or "",
            v3_score  = _score(v3.get("baseScore")),
        ),
        dates       = Dates(published=_format_date(published), modified=_format_date(modified)),
        published   = published,
    )


def parse_vulnerability(data) -> Vulnerability:
    if not isinstance(data, dict):
        raise ValueError("top level is not an object")
    inner = data.get("cve") if isinstance(data.get("cve"), dict) else data
    if "CVE_data_meta" in inner:
        return _parse_feed_item(data)
    return _parse_api_item(inner)


def parse_vulnerability_file(path: Path) -> Vulnerability:
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        vuln = parse_vulnerability(data)
    except MALFORMED_RECORD as exc:
        raise RecordParseError(path, exc) from exc
    if not vuln.cve_id:
        raise RecordParseError(path, "no CVE id")
    return vuln


# ── Enrich / render ────────────────────────────────────────────────────────────

def add_cwe_information(vuln: Vulnerability, cwe_dir: Path):
    weakness = load_weakness(cwe_dir, vuln.cwe_id)
    if weakness is not None:
        vuln.weakness = weakness


def render_vulnerability(vuln: Vulnerability) -> str:
    return render(
        "vulnerability",
        title         = vuln.title,
        date          = vuln.post_date,
        vulnerability = vuln,
        weakness      = vuln.weakness,
    )


def vulnerability_transformer(cwe_dir: Path, progress: bool = False, name: str = "nvd") -> RecordTransformer:
    return RecordTransformer(
        name        = name,
        parse       = parse_vulnerability_file,
        enrich      = partial(add_cwe_information, cwe_dir=cwe_dir),
        render      = render_vulnerability,
        output_name = lambda vuln: f"{vuln.cve_id}.md",
        progress    = progress,
    )


# ── Generators ─────────────────────────────────────────────────────────────────

def generate_vulnerability_pages(nvd_dir: Path, cwe_dir: Path, posts_dir: Path,
                                 progress: bool = False) -> TransformStats:
    """One partition. Raises SourceListingError when nvd_dir cannot be listed."""
    files = get_all_files_of_kind(nvd_dir, ".json")
    transformer = vulnerability_transformer(cwe_dir, progress=progress, name=f"nvd/{nvd_dir.name}")
    return transformer.run(files, posts_dir)


def generate_vuln_pages(config: GeneratorConfig) -> list[PartitionResult]:
    """Every year from config.first_year to config.last_year, config.workers at a time."""
    log.info(f"Generating vulnerability pages for {len(config.years)} years "
             f"({config.years[0]}–{config.years[-1]}) with {config.workers} workers")

    jobs = {
        year: partial(
            generate_vulnerability_pages,
            config.nvd_dir / year,
            config.cwe_dir,
            config.nvd_posts_dir,
        )
        for year in config.years
    }
    results = run_partitions(jobs, workers=config.workers, progress=config.progress, desc="NVD years")

    written = sum(r.stats.written for r in results if r.ok)
    failed  = [r.name for r in results if not r.ok]
    log.info(f"  NVD: {written:,} pages across {len(results) - len(failed)} years")
    if failed:
        log.warning(f"  NVD years failed: {', '.join(failed)}")
    return results

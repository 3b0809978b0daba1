"""
cwe.py
------
CWE weakness lookup used to enrich vulnerability pages.

vuln-list keeps one JSON document per weakness, named after its id:
    vuln-list/cwe/CWE-79.json
    {
      "ID": 79, "Name": "...", "Description": "...",
      "ExtendedDescription": ["...", ...],
      "CommonConsequences":    {"Consequence": [{"Scope": [...], "Impact": [...]}]},
      "PotentialMitigations":  {"Mitigation":  [{"Phase": [...], "Strategy": "...", "Description": [...]}]},
      "RelatedAttackPatterns": {"RelatedAttackPattern": [{"CAPECID": 63}]}
    }

A weakness that is missing or unreadable yields None; enrichment is best effort.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

log = logging.getLogger(__name__)

CWE_ID_PATTERN = re.compile(r"^CWE-\d+$")


@dataclass(frozen=True)
class Consequence:
    scope:  list[str] = field(default_factory=list)
    impact: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Weakness:
    cwe_id:               str = ""
    name:                 str = ""
    description:          str = ""
    extended_description: list[str] = field(default_factory=list)
    consequences:         list[Consequence] = field(default_factory=list)
    mitigations:          list[str] = field(default_factory=list)
    attack_patterns:      list[int] = field(default_factory=list)


def _as_list(value) -> list:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _strings(value) -> list[str]:
    return [str(v).strip() for v in _as_list(value) if v is not None and str(v).strip()]


def parse_weakness(data: dict, cwe_id: str = "") -> Weakness:
    consequences = [
        Consequence(scope=_strings(c.get("Scope")), impact=_strings(c.get("Impact")))
        for c in _as_list((data.get("CommonConsequences") or {}).get("Consequence"))
        if isinstance(c, dict)
    ]

    mitigations: list[str] = []
    for m in _as_list((data.get("PotentialMitigations") or {}).get("Mitigation")):
        if isinstance(m, dict):
            mitigations.extend(_strings(m.get("Description")))

    attack_patterns: list[int] = []
    for p in _as_list((data.get("RelatedAttackPatterns") or {}).get("RelatedAttackPattern")):
        if isinstance(p, dict) and p.get("CAPECID") not in (None, ""):
            try:
                attack_patterns.append(int(p["CAPECID"]))
            except (TypeError, ValueError):
                continue

    raw_id = data.get("ID")
    return Weakness(
        cwe_id               = cwe_id or (f"CWE-{raw_id}" if raw_id not in (None, "") else ""),
        name                 = str(data.get("Name") or ""),
        description          = str(data.get("Description") or "").strip(),
        extended_description = _strings(data.get("ExtendedDescription")),
        consequences         = consequences,
        mitigations          = mitigations,
        attack_patterns      = attack_patterns,
    )


def load_weakness(cwe_dir: Path, cwe_id: str) -> Optional[Weakness]:
    """Weakness for cwe_id ("CWE-79"), or None when there is nothing usable."""
    if not CWE_ID_PATTERN.match(cwe_id or ""):
        # NVD-CWE-Other / NVD-CWE-noinfo have no catalog entry
        return None

    path = cwe_dir / f"{cwe_id}.json"
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as exc:
        log.debug(f"  No CWE information for {cwe_id}: {exc}")
        return None

    if not isinstance(data, dict):
        log.debug(f"  Unexpected CWE document layout in {path}")
        return None
    try:
        return parse_weakness(data, cwe_id)
    except (AttributeError, TypeError) as exc:
        log.debug(f"  Unexpected CWE document layout in {path}: {exc}")
        return None

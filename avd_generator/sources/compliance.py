"""
compliance.py
-------------
Compliance spec pages: pkg/compliance/*.yaml → content/compliance/<platform>/<spec id>.md

    spec:
      id: k8s-nsa
      title: National Security Agency - Kubernetes Hardening Guidance v1.0
      description: National Security Agency - Kubernetes Hardening Guidance
      version: "1.0"
      platform: k8s                      # optional, else taken from the file name
      relatedResources:
        - https://www.nsa.gov/...
      controls:
        - id: "1.0"
          name: Non-root containers
          description: Check that container is not running as root
          checks:
            - id: AVD-KSV-0012
          severity: MEDIUM

Each platform directory is registered in the compliance MenuRegistry.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from avd_generator.errors import MALFORMED_RECORD, RecordParseError
from avd_generator.files import get_all_files, is_safe_file_name
from avd_generator.menu import MenuRegistry
from avd_generator.templates import render
from avd_generator.transform import RecordTransformer, TransformStats

log = logging.getLogger(__name__)

SPEC_SUFFIXES = (".yaml", ".yml")
PLATFORM_ALIASES = {"k8s": "kubernetes"}


@dataclass(frozen=True)
class ComplianceControl:
    control_id:  str
    name:        str
    description: str = ""
    severity:    str = ""
    checks:      list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ComplianceSpec:
    spec_id:           str
    title:             str
    platform:          str
    description:       str = ""
    version:           str = ""
    related_resources: list[str] = field(default_factory=list)
    controls:          list[ComplianceControl] = field(default_factory=list)

    @property
    def relative_path(self) -> str:
        return f"{self.platform}/{self.spec_id}.md"


def _text(value) -> str:
    return "" if value is None else str(value).strip()


def _cell(value) -> str:
    # keep a value inside one markdown table cell
    return _text(value).replace("|", "\\|").replace("\n", " ")


def parse_control(raw: dict) -> ComplianceControl:
    checks = []
    for check in raw.get("checks") or []:
        check_id = check.get("id") if isinstance(check, dict) else check
        if _text(check_id):
            checks.append(_text(check_id))
    return ComplianceControl(
        control_id  = _cell(raw.get("id")),
        name        = _cell(raw.get("name")),
        description = _text(raw.get("description")),
        severity    = _cell(raw.get("severity")).upper(),
        checks      = checks,
    )


def _platform_from(spec: dict, path: Path) -> str:
    platform = _text(spec.get("platform")) or path.stem.split("-")[0]
    platform = platform.lower()
    return PLATFORM_ALIASES.get(platform, platform)


def parse_compliance_spec(data, path: Path = Path("<string>")) -> ComplianceSpec:
    spec = data.get("spec") if isinstance(data, dict) else None
    if not isinstance(spec, dict):
        raise RecordParseError(path, "no spec: mapping")

    spec_id = _text(spec.get("id"))
    if not spec_id:
        raise RecordParseError(path, "no spec.id")

    try:
        parsed = ComplianceSpec(
            spec_id           = spec_id,
            title             = _text(spec.get("title")) or spec_id,
            platform          = _platform_from(spec, path),
            description       = _text(spec.get("description")),
            version           = _text(spec.get("version")),
            related_resources = [_text(r) for r in spec.get("relatedResources") or [] if _text(r)],
            controls          = [parse_control(c) for c in spec.get("controls") or [] if isinstance(c, dict)],
        )
    except MALFORMED_RECORD as exc:
        raise RecordParseError(path, f"bad spec field: {exc}") from exc

    for segment in (parsed.platform, parsed.spec_id):
        if not is_safe_file_name(segment):
            raise RecordParseError(path, f"{segment!r} cannot be used as a page path")
    return parsed


def parse_compliance_spec_file(path: Path) -> ComplianceSpec:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise RecordParseError(path, exc) from exc
    return parse_compliance_spec(data, path)


def render_compliance_spec(spec: ComplianceSpec) -> str:
    return render("compliance", spec=spec)


def generate_compliance_pages(spec_dir: Path, posts_dir: Path,
                              compliance_menu: Optional[MenuRegistry] = None,
                              progress: bool = False) -> TransformStats:
    """Raises SourceListingError when spec_dir cannot be listed."""
    log.info(f"Generating compliance pages from: {spec_dir}...")
    files = [p for p in get_all_files(spec_dir) if p.suffix in SPEC_SUFFIXES]

    def register(spec: ComplianceSpec, _out_path: Path):
        if compliance_menu is not None:
            compliance_menu.add(spec.platform)

    transformer = RecordTransformer(
        name        = "compliance",
        parse       = parse_compliance_spec_file,
        render      = render_compliance_spec,
        output_name = lambda spec: spec.relative_path,
        on_written  = register,
        progress    = progress,
    )
    return transformer.run(files, posts_dir)

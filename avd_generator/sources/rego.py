"""
rego.py
-------
Rego policy pages: <policy dir>/*.rego (not *_test*) → content/appshield/<id>.md

Policies carry their metadata as comment lines above the package clause:

    # @title: Process can elevate its own privileges
    # @description: A program inside the container can elevate its own privileges ...
    # @recommended_actions: Set 'set containers[].securityContext.allowPrivilegeEscalation' to 'false'.
    # @severity: Medium
    # @id: KSV001
    # @link: https://kubernetes.io/docs/concepts/security/pod-security-standards/
    package main

parse_rego_metadata reads those lines into a RegoMetadata; everything from the
package clause on is the policy body shown on the page.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from avd_generator.errors import RecordParseError
from avd_generator.files import get_all_files_of_kind
from avd_generator.templates import render
from avd_generator.transform import RecordTransformer, TransformStats

log = logging.getLogger(__name__)

# Policies have no date of their own; keep the page date stable between runs.
REGO_POLICY_DATE = datetime.fromtimestamp(1594669401, tz=timezone.utc)

_METADATA_LINE = re.compile(r"^#\s*@?\s*(?P<key>[A-Za-z_][\w-]*)\s*:\s*(?P<value>.*)$")
_PACKAGE_LINE  = re.compile(r"^\s*package\s+\S+")
_LINK_KEYS     = {"link", "links", "url"}


@dataclass
class RegoMetadata:
    policy_id:           str = ""
    title:               str = ""
    description:         str = ""
    severity:            str = ""
    recommended_actions: str = ""
    links:               list[str] = field(default_factory=list)
    extra:               dict[str, str] = field(default_factory=dict)


@dataclass
class RegoPolicy:
    metadata: RegoMetadata
    policy:   str

    @property
    def title(self) -> str:
        return self.metadata.policy_id


def parse_rego_metadata(lines) -> RegoMetadata:
    """
    Key/value pairs from the leading comment lines. Keys are case-insensitive;
    link keys accumulate, any other repeated key keeps its last value, and
    unknown keys land in .extra. Stops at the first non-comment line.
    """
    meta = RegoMetadata()
    for line in lines:
        stripped = line.strip()
        if not stripped:
            continue
        if not stripped.startswith("#"):
            break

        match = _METADATA_LINE.match(stripped)
        if not match:
            continue
        key   = match.group("key").lower().replace("-", "_")
        value = match.group("value").strip()

        if key == "id":
            meta.policy_id = value
        elif key == "title":
            meta.title = value
        elif key == "description":
            meta.description = value
        elif key == "severity":
            meta.severity = value
        elif key == "recommended_actions":
            meta.recommended_actions = value
        elif key in _LINK_KEYS:
            meta.links.extend(v.strip() for v in value.split(",") if v.strip())
        else:
            meta.extra[key] = value
    return meta


def parse_rego_policy(text: str, path: Path = Path("<string>")) -> RegoPolicy:
    lines = text.splitlines()
    package_at = next((i for i, line in enumerate(lines) if _PACKAGE_LINE.match(line)), None)
    if package_at is None:
        raise RecordParseError(path, "no package clause")

    meta = parse_rego_metadata(lines[:package_at])
    if not meta.policy_id:
        raise RecordParseError(path, "no @id in policy metadata")
    return RegoPolicy(metadata=meta, policy="\n".join(lines[package_at:]).strip())


def parse_rego_policy_file(path: Path) -> RegoPolicy:
    return parse_rego_policy(path.read_text(encoding="utf-8"), path)


def render_rego_policy(policy: RegoPolicy) -> str:
    return render(
        "rego",
        title  = policy.title,
        date   = REGO_POLICY_DATE.strftime("%Y-%m-%d %H:%M:%S +0000"),
        policy = policy,
    )


def rego_transformer(progress: bool = False, name: str = "rego") -> RecordTransformer:
    return RecordTransformer(
        name        = name,
        parse       = parse_rego_policy_file,
        render      = render_rego_policy,
        output_name = lambda policy: f"{policy.title}.md",
        progress    = progress,
    )


def generate_rego_policy_pages(policy_dir: Path, posts_dir: Path, progress: bool = False) -> TransformStats:
    """Raises SourceListingError when policy_dir cannot be listed."""
    log.info(f"Generating policies in: {policy_dir}...")
    files = get_all_files_of_kind(policy_dir, ".rego", exclude="_test")
    return rego_transformer(progress=progress, name=f"rego/{policy_dir.parent.name}").run(files, posts_dir)

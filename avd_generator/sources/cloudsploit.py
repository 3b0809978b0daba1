"""
cloudsploit.py
--------------
CloudSploit plugin pages: plugins/<provider>/<service>/<plugin>.js
    → content/misconfig/<provider>/<service>/<plugin>.md

A plugin is a node module whose exports open with its metadata:

    module.exports = {
        title: 'S3 Bucket All Users Policy',
        category: 'S3',
        domain: 'Storage',
        severity: 'High',
        description: 'Ensures S3 bucket policies do not allow global write, delete, or read permissions',
        more_info: 'S3 buckets can be configured to allow the global principal ' +
            'to access the bucket via the bucket policy.',
        link: 'https://docs.aws.amazon.com/AmazonS3/latest/dev/using-iam-policies.html',
        recommended_action: 'Remove wildcard principals from the bucket policy statements.',
        apis: ['S3:listBuckets', 'S3:getBucketPolicy'],
        run: function(cache, settings, callback) { ... }

Only string-literal values before `run:` are read; the code is never evaluated.
The remediations repo may hold a longer write-up per plugin at
<remediations>/<provider>/<service>/<plugin>.md, which is appended to the
Recommended Actions section when present.
"""

import logging
import re
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Optional

from avd_generator.errors import RecordParseError
from avd_generator.files import get_all_files_recursive
from avd_generator.menu import MenuRegistry, section_name
from avd_generator.sources.kubehunter import split_front_matter
from avd_generator.templates import render
from avd_generator.transform import RecordTransformer, TransformStats

log = logging.getLogger(__name__)

PLUGIN_KEYS = ("title", "category", "domain", "severity", "description",
               "more_info", "link", "recommended_action")

_STRING  = r"""'(?:[^'\\\n]|\\.)*'|"(?:[^"\\\n]|\\.)*"|`[^`]*`"""
_FIELD   = re.compile(
    rf"^\s*(?P<key>{'|'.join(PLUGIN_KEYS)})\s*:\s*(?P<value>(?:{_STRING})(?:\s*\+\s*(?:{_STRING}))*)",
    re.MULTILINE,
)
_LITERAL = re.compile(_STRING)
_RUN     = re.compile(r"^\s*run\s*:", re.MULTILINE)
_ESCAPE  = re.compile(r"\\(.)")


@dataclass
class CloudSploitPlugin:
    plugin_id:          str
    provider:           str
    service:            str
    title:              str
    category:           str = ""
    domain:             str = ""
    severity:           str = ""
    description:        str = ""
    more_info:          str = ""
    link:               str = ""
    recommended_action: str = ""
    remediation:        str = ""

    @property
    def relative_path(self) -> str:
        return f"{self.provider}/{self.service}/{self.plugin_id.lower()}.md"


def _join_literals(value: str) -> str:
    """'a' + 'b' → ab, with JS backslash escapes undone."""
    return "".join(_ESCAPE.sub(r"\1", lit[1:-1]) for lit in _LITERAL.findall(value))


def parse_plugin_metadata(text: str) -> dict[str, str]:
    """First string value of every metadata key above `run:`."""
    run = _RUN.search(text)
    header = text[:run.start()] if run else text
    meta: dict[str, str] = {}
    for match in _FIELD.finditer(header):
        meta.setdefault(match.group("key"), _join_literals(match.group("value")).strip())
    return meta


def parse_cloudsploit_plugin_file(path: Path, plugin_dir: Path) -> CloudSploitPlugin:
    parts = path.relative_to(plugin_dir).parts
    if len(parts) != 3:
        raise RecordParseError(path, "expected <provider>/<service>/<plugin>.js")

    meta = parse_plugin_metadata(path.read_text(encoding="utf-8"))
    if not meta.get("title"):
        raise RecordParseError(path, "no title in plugin exports")

    return CloudSploitPlugin(
        plugin_id = path.stem,
        provider  = parts[0].lower(),
        service   = parts[1].lower(),
        **meta,
    )


def add_remediation(plugin: CloudSploitPlugin, remediations_dir: Path):
    """Best effort: a missing or unreadable write-up leaves .remediation empty."""
    path = remediations_dir / plugin.provider / plugin.service / f"{plugin.plugin_id}.md"
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        log.debug(f"  No remediation for {plugin.plugin_id}: {exc}")
        return
    try:
        _, text = split_front_matter(text)
    except ValueError:
        pass
    plugin.remediation = text.strip()


def render_cloudsploit_plugin(plugin: CloudSploitPlugin) -> str:
    return render("cloudsploit", plugin=plugin, provider_name=section_name(plugin.provider))


def generate_cloudsploit_pages(plugin_dir: Path, posts_dir: Path, remediations_dir: Path,
                               misconfig_menu: Optional[MenuRegistry] = None,
                               progress: bool = False) -> TransformStats:
    """Raises SourceListingError when plugin_dir cannot be listed."""
    log.info(f"Generating CloudSploit pages from: {plugin_dir}...")
    files = [p for p in get_all_files_recursive(plugin_dir, ".js") if not p.name.endswith(".spec.js")]

    def register(plugin: CloudSploitPlugin, _out_path: Path):
        if misconfig_menu is not None:
            misconfig_menu.add(plugin.provider, plugin.service)

    transformer = RecordTransformer(
        name        = "cloudsploit",
        parse       = partial(parse_cloudsploit_plugin_file, plugin_dir=plugin_dir),
        enrich      = partial(add_remediation, remediations_dir=remediations_dir),
        render      = render_cloudsploit_plugin,
        output_name = lambda plugin: plugin.relative_path,
        on_written  = register,
        progress    = progress,
    )
    return transformer.run(files, posts_dir)

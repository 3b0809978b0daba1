"""
kubehunter.py
-------------
Re-homes the kube-hunter knowledge base (docs/_kb/KHV*.md) as misconfiguration
pages under content/misconfig/kubernetes/kubehunter/.

The source pages are Jekyll markdown:

    ---
    vid: KHV002
    title: Kubernetes version disclosure
    categories: [Information Disclosure]
    ---

    # {{ page.vid }} - {{ page.title }}

    ## Issue description
    ...
    ## Remediation
    ...
    ## References
    ...

The front matter gains the site's page keys, vid/categories become id/types,
and the body headings are renamed to the ones the misconfig layout expects.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from avd_generator.errors import RecordParseError
from avd_generator.files import get_all_files_of_kind
from avd_generator.menu import INDEX_FILE, MenuRegistry, TopLevelMenu
from avd_generator.transform import RecordTransformer, TransformStats

log = logging.getLogger(__name__)

_TITLE = re.compile(r"^title:\s*(.+?)\s*$", re.MULTILINE)
_FRONT_MATTER_KEYS = {"vid": "id", "categories": "types"}
_HEADING_RENAMES = {
    "## Remediation": "### Recommended Actions",
    "## References":  "### Links",
}
_JEKYLL_HEADING = "# {{ page.vid }} - {{ page.title }}"


@dataclass(frozen=True)
class KubeHunterDoc:
    doc_id:       str
    file_name:    str
    title:        str
    front_matter: str
    body:         str


def split_front_matter(text: str) -> tuple[str, str]:
    """(front matter without fences, body). Raises ValueError if there is none."""
    lines = text.splitlines()
    if not lines or lines[0].strip() != "---":
        raise ValueError("no front matter")
    for i, line in enumerate(lines[1:], start=1):
        if line.strip() == "---":
            return "\n".join(lines[1:i]), "\n".join(lines[i + 1:])
    raise ValueError("unterminated front matter")


def parse_kube_hunter_doc(path: Path) -> KubeHunterDoc:
    text = path.read_text(encoding="utf-8")
    try:
        front_matter, body = split_front_matter(text)
    except ValueError as exc:
        raise RecordParseError(path, exc) from exc

    match = _TITLE.search(front_matter)
    if not match:
        raise RecordParseError(path, "no title in front matter")

    return KubeHunterDoc(
        doc_id       = path.stem.lower(),
        file_name    = path.name,
        title        = match.group(1).strip().strip("\"'"),
        front_matter = front_matter,
        body         = body,
    )


def _rename_front_matter_keys(front_matter: str) -> str:
    lines = []
    for line in front_matter.splitlines():
        key, sep, rest = line.partition(":")
        if sep and key.strip() in _FRONT_MATTER_KEYS and not line.startswith((" ", "\t")):
            line = f"{_FRONT_MATTER_KEYS[key.strip()]}:{rest}"
        lines.append(line)
    return "\n".join(lines)


def render_kube_hunter_doc(doc: KubeHunterDoc) -> str:
    header = yaml.safe_dump({
        "avd_page_type": "avd_page",
        "icon":          "kube-hunter",
        "shortName":     doc.title,
        "source":        "Kube Hunter",
        "aliases":       [f"/kube-hunter/{doc.doc_id}"],
        "category":      "misconfig",
        "remediations":  ["kubernetes"],
        "breadcrumbs":   [{"name": "Kubernetes", "path": "/misconfig/kubernetes"}],
    }, sort_keys=False, default_flow_style=False, allow_unicode=True)

    body = []
    for line in doc.body.splitlines():
        stripped = line.strip()
        if stripped == _JEKYLL_HEADING:
            continue
        if stripped == "## Issue description":
            line = f"### {doc.title}"
        elif stripped in _HEADING_RENAMES:
            line = _HEADING_RENAMES[stripped]
        body.append(line)

    return f"---\n{header}{_rename_front_matter_keys(doc.front_matter)}\n---\n" + "\n".join(body).rstrip() + "\n"


def kube_hunter_transformer(progress: bool = False) -> RecordTransformer:
    return RecordTransformer(
        name        = "kube-hunter",
        parse       = parse_kube_hunter_doc,
        render      = render_kube_hunter_doc,
        output_name = lambda doc: doc.file_name,
        progress    = progress,
    )


def generate_kube_hunter_pages(input_dir: Path, posts_dir: Path,
                               misconfig_menu: Optional[MenuRegistry] = None,
                               progress: bool = False) -> TransformStats:
    """Raises SourceListingError when input_dir cannot be listed."""
    log.info(f"Generating kube-hunter pages in: {posts_dir}...")
    pages = [p for p in get_all_files_of_kind(input_dir, ".md") if p.name != INDEX_FILE]
    stats = kube_hunter_transformer(progress=progress).run(pages, posts_dir)

    TopLevelMenu(
        title       = "Kube Hunter Misconfiguration",
        page_type   = "avd_list",
        path        = posts_dir / INDEX_FILE,
        heading     = "Kube Hunter",
        icon        = "kube-hunter",
        category    = "misconfig",
        menu        = "Kube Hunter",
        menu_id     = "kubehunter",
        menu_parent = "kubernetes",
    ).generate()

    if misconfig_menu is not None:
        misconfig_menu.add("kubernetes")
    return stats

"""
defsec.py
---------
Trivy check documentation: avd_docs/<provider>/<service>/<AVD id>/docs.md
    → content/misconfig/<provider>/<service>/<avd id>.md

Each check directory holds the explanation (docs.md) and one remediation
snippet per IaC flavour (Terraform.md, CloudFormation.md, ...):

    avd_docs/aws/s3/AVD-AWS-0086/
        docs.md
        Terraform.md
        CloudFormation.md

docs.md opens with a one-line summary and marks where the remediations go:

    Block public access ACLs on S3 buckets

    ### Impact
    PUT calls with public ACLs specified can make objects public

    <!-- DO NOT CHANGE -->
    {{ remediationActions }}

    ### Links
    - https://docs.aws.amazon.com/AmazonS3/latest/userguide/access-control-block-public-access.html
"""

import logging
import re
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Optional

from avd_generator.errors import RecordParseError
from avd_generator.files import get_all_files_recursive
from avd_generator.menu import MenuRegistry
from avd_generator.templates import render
from avd_generator.transform import RecordTransformer, TransformStats

log = logging.getLogger(__name__)

DOCS_FILE = "docs.md"
REMEDIATION_PLACEHOLDER = "{{ remediationActions }}"
_DO_NOT_CHANGE = "<!-- DO NOT CHANGE -->"
_BLANK_RUNS    = re.compile(r"\n{3,}")


@dataclass(frozen=True)
class Remediation:
    name: str
    text: str


@dataclass(frozen=True)
class DefsecDoc:
    avd_id:       str
    provider:     str
    service:      str
    summary:      str
    body:         str
    remediations: list[Remediation] = field(default_factory=list)

    @property
    def relative_path(self) -> str:
        return f"{self.provider}/{self.service}/{self.avd_id.lower()}.md"


def read_remediations(check_dir: Path) -> list[Remediation]:
    """Every *.md beside docs.md, by file name."""
    remediations = []
    for path in sorted(check_dir.glob("*.md")):
        if path.name == DOCS_FILE:
            continue
        text = path.read_text(encoding="utf-8").strip()
        if text:
            remediations.append(Remediation(name=path.stem, text=text))
    return remediations


def parse_defsec_doc(path: Path, docs_dir: Path) -> DefsecDoc:
    parts = path.relative_to(docs_dir).parts
    if len(parts) != 4:
        raise RecordParseError(path, "expected <provider>/<service>/<AVD id>/docs.md")
    provider, service, avd_id, _ = parts

    lines = path.read_text(encoding="utf-8").splitlines()
    first = next((i for i, line in enumerate(lines) if line.strip()), None)
    if first is None:
        raise RecordParseError(path, "empty docs.md")

    body = [line for line in lines[first + 1:] if line.strip() != _DO_NOT_CHANGE]
    return DefsecDoc(
        avd_id       = avd_id,
        provider     = provider.lower(),
        service      = service.lower(),
        summary      = lines[first].strip().lstrip("#").strip(),
        body         = "\n".join(body).strip(),
        remediations = read_remediations(path.parent),
    )


def remediation_section(doc: DefsecDoc) -> str:
    if not doc.remediations:
        return ""
    blocks = [f"#### {r.name}\n{r.text}" for r in doc.remediations]
    return "### Recommended Actions\n\n" + "\n\n".join(blocks)


def render_defsec_doc(doc: DefsecDoc) -> str:
    remediation = remediation_section(doc)
    if REMEDIATION_PLACEHOLDER in doc.body:
        body = doc.body.replace(REMEDIATION_PLACEHOLDER, remediation)
    else:
        body = f"{doc.body}\n\n{remediation}"
    return render("defsec", doc=doc, body=_BLANK_RUNS.sub("\n\n", body).strip())


def generate_defsec_pages(docs_dir: Path, posts_dir: Path,
                          misconfig_menu: Optional[MenuRegistry] = None,
                          progress: bool = False) -> TransformStats:
    """Raises SourceListingError when docs_dir cannot be listed."""
    log.info(f"Generating check documentation pages from: {docs_dir}...")
    files = [p for p in get_all_files_recursive(docs_dir, DOCS_FILE) if p.name == DOCS_FILE]

    def register(doc: DefsecDoc, _out_path: Path):
        if misconfig_menu is not None:
            misconfig_menu.add(doc.provider, doc.service)

    transformer = RecordTransformer(
        name        = "defsec",
        parse       = partial(parse_defsec_doc, docs_dir=docs_dir),
        render      = render_defsec_doc,
        output_name = lambda doc: doc.relative_path,
        on_written  = register,
        progress    = progress,
    )
    return transformer.run(files, posts_dir)

"""
templates.py
------------
Jinja2 page templates, one per source type.

trim_blocks + lstrip_blocks are on, so a line holding only a {% tag %} leaves
no trace in the output. StrictUndefined turns a template/record mismatch into
a RenderError for that record instead of a silently blank field.
"""

import json

from jinja2 import BaseLoader, Environment, StrictUndefined, TemplateError

from avd_generator.errors import RenderError
from avd_generator.pages import SENTINEL

VULNERABILITY_TEMPLATE = """\
---
title: "{{ title }}"
date: {{ date }}
draft: false
---

### Description
{{ vulnerability.description }}

{% if weakness.name %}
#### Title
{{ weakness.name }}

{% endif %}
{% if weakness.description %}
#### Description
{{ weakness.description }}

{% endif %}
{% if weakness.extended_description %}
#### Extended Description
{% for paragraph in weakness.extended_description %}
{{ paragraph }}
{% endfor %}

{% endif %}
{% if weakness.consequences %}
#### Common Consequences
{% for consequence in weakness.consequences %}
Scope: {{ consequence.scope | join(", ") }}

Impact: {{ consequence.impact | join(", ") }}

{% endfor %}
{% endif %}
{% if weakness.mitigations %}
#### Potential Mitigations
{% for mitigation in weakness.mitigations %}
- {{ mitigation }}
{% endfor %}

{% endif %}
{% if weakness.attack_patterns %}
#### Related Attack Patterns
{% for capec_id in weakness.attack_patterns %}
- https://capec.mitre.org/data/definitions/{{ capec_id }}.html
{% endfor %}

{% endif %}
### CVSS
| Version | Vector           | Score  |
| ------------- |:-------------| -----:|
| V2      | {{ vulnerability.cvss.v2_vector }} | {{ vulnerability.cvss.v2_score | score }} |
| V3      | {{ vulnerability.cvss.v3_vector }} | {{ vulnerability.cvss.v3_score | score }} |

### Dates
- Published: {{ vulnerability.dates.published }}
- Modified: {{ vulnerability.dates.modified }}

### References
{% for url in vulnerability.references %}
- {{ url }}
{% endfor %}

""" + SENTINEL + "\n"

RESERVED_TEMPLATE = """\
---
title: "{{ record.cve_id }}"
date: {{ date }}
draft: false
reserved: true
---

### Description
This vulnerability is marked as RESERVED by the CVE Numbering Authority.
{% if record.description %}

{{ record.description }}
{% endif %}

When the CVE is published, this page will be replaced with the full record.

""" + SENTINEL + "\n"

REGO_POLICY_TEMPLATE = """\
---
title: "{{ title }}"
date: {{ date }}
draft: false
---

### {{ policy.metadata.title }}

### Description
{{ policy.metadata.description }}

### Severity
{{ policy.metadata.severity }}

### Recommended Actions
{{ policy.metadata.recommended_actions }}

### Rego Policy
```
{{ policy.policy }}
```
### Links
{% for link in policy.metadata.links %}
- {{ link }}
{% endfor %}

""" + SENTINEL + "\n"

COMPLIANCE_TEMPLATE = """\
---
title: {{ spec.title | quote }}
draft: false
avd_page_type: compliance_page
shortName: {{ spec.spec_id }}
version: "{{ spec.version }}"
category: compliance
---

### {{ spec.title }}

{{ spec.description }}

### Controls
| ID | Name | Severity | Checks |
| -- | ---- | -------- | ------ |
{% for control in spec.controls %}
| {{ control.control_id }} | {{ control.name }} | {{ control.severity }} | {% for check in control.checks %}[{{ check }}](/misconfig/{{ check | lower }}){% if not loop.last %}, {% endif %}{% endfor %} |
{% endfor %}
{% if spec.related_resources %}

### Links
{% for url in spec.related_resources %}
- {{ url }}
{% endfor %}
{% endif %}

""" + SENTINEL + "\n"

CLOUDSPLOIT_TEMPLATE = """\
---
title: {{ plugin.title | quote }}
id: {{ plugin.plugin_id | quote }}
draft: false
avd_page_type: avd_page
source: CloudSploit
icon: {{ plugin.provider | quote }}
shortName: {{ plugin.title | quote }}
severity: {{ plugin.severity | lower | quote }}
category: misconfig
service: {{ plugin.service | quote }}
---

### {{ plugin.title }}

{{ plugin.description }}

### Quick Info
| Provider | Service | Domain | Severity |
| -------- | ------- | ------ | -------- |
| {{ provider_name }} | {{ plugin.category }} | {{ plugin.domain }} | {{ plugin.severity }} |

### Detailed Description
{{ plugin.more_info }}

### Recommended Actions
{{ plugin.recommended_action }}
{% if plugin.remediation %}

{{ plugin.remediation }}
{% endif %}

### Links
{% if plugin.link %}
- {{ plugin.link }}
{% endif %}

""" + SENTINEL + "\n"

DEFSEC_TEMPLATE = """\
---
title: {{ doc.avd_id | quote }}
id: {{ doc.avd_id | quote }}
draft: false
avd_page_type: defsec_page
source: Trivy
icon: {{ doc.provider | quote }}
shortName: {{ doc.summary | quote }}
category: misconfig
service: {{ doc.service | quote }}
---

### {{ doc.summary }}

{{ body }}

""" + SENTINEL + "\n"

TEMPLATES = {
    "vulnerability": VULNERABILITY_TEMPLATE,
    "reserved":      RESERVED_TEMPLATE,
    "rego":          REGO_POLICY_TEMPLATE,
    "compliance":    COMPLIANCE_TEMPLATE,
    "cloudsploit":   CLOUDSPLOIT_TEMPLATE,
    "defsec":        DEFSEC_TEMPLATE,
}


def format_score(value) -> str:
    """CVSS score the way the site shows it: 7.5, 10, 0."""
    return f"{float(value or 0):g}"


def quote(value) -> str:
    """Double-quoted front matter string (JSON strings are valid YAML)."""
    return json.dumps(str(value), ensure_ascii=False)


def _build_env() -> Environment:
    env = Environment(
        loader=BaseLoader(),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        autoescape=False,
    )
    env.filters["score"] = format_score
    env.filters["quote"] = quote
    return env


_ENV = _build_env()
_COMPILED = {name: _ENV.from_string(source) for name, source in TEMPLATES.items()}


def render(kind: str, **context) -> str:
    """Render the template for one source kind. Raises RenderError."""
    try:
        template = _COMPILED[kind]
    except KeyError:
        raise RenderError(f"no template for {kind!r}") from None
    try:
        return template.render(**context)
    except (TemplateError, TypeError, ValueError) as exc:
        raise RenderError(f"{kind} template: {exc}") from exc

"""
Shared fixtures: small on-disk copies of each upstream layout.
Everything is written under pytest's tmp_path; nothing touches the network.
"""

import json

import pytest


def write_json(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def feed_item(cve_id, description, cwe_id="", references=(), v2=None, v3=None,
              published="2020-01-14T23:15Z", modified="2020-01-16T19:30Z"):
    """NVD JSON 1.1 feed item as vuln-list stores it."""
    impact = {}
    if v2:
        impact["baseMetricV2"] = {"cvssV2": {"vectorString": v2[0], "baseScore": v2[1]}}
    if v3:
        impact["baseMetricV3"] = {"cvssV3": {"vectorString": v3[0], "baseScore": v3[1]}}
    return {
        "cve": {
            "CVE_data_meta": {"ID": cve_id},
            "problemtype": {"problemtype_data": [
                {"description": [{"lang": "en", "value": cwe_id}] if cwe_id else []}
            ]},
            "references": {"reference_data": [{"url": u} for u in references]},
            "description": {"description_data": [{"lang": "en", "value": description}]},
        },
        "impact": impact,
        "publishedDate": published,
        "lastModifiedDate": modified,
    }


@pytest.fixture
def make_feed_item():
    return feed_item


@pytest.fixture
def dump_json():
    return write_json


@pytest.fixture
def weakness_79():
    return {
        "ID": 79,
        "Name": "Improper Neutralization of Input During Web Page Generation ('Cross-site Scripting')",
        "Description": "The software does not neutralize user-controllable input.",
        "ExtendedDescription": ["Cross-site scripting (XSS) vulnerabilities occur when:"],
        "CommonConsequences": {"Consequence": [
            {"Scope": ["Confidentiality", "Integrity"], "Impact": ["Read Application Data"]},
        ]},
        "PotentialMitigations": {"Mitigation": [
            {"Phase": ["Implementation"], "Description": ["Use a vetted library or framework."]},
            {"Phase": ["Architecture and Design"], "Description": ["Understand the context."]},
        ]},
        "RelatedAttackPatterns": {"RelatedAttackPattern": [{"CAPECID": 63}, {"CAPECID": 588}]},
    }


@pytest.fixture
def nvd_layout(tmp_path):
    """(nvd_dir, cwe_dir, posts_dir) with empty directories."""
    nvd_dir   = tmp_path / "vuln-list" / "nvd"
    cwe_dir   = tmp_path / "vuln-list" / "cwe"
    posts_dir = tmp_path / "content" / "nvd"
    for d in (nvd_dir, cwe_dir):
        d.mkdir(parents=True)
    return nvd_dir, cwe_dir, posts_dir

"""Kube-hunter knowledge base pages."""

import pytest
import yaml

from avd_generator.errors import RecordParseError
from avd_generator.menu import MenuRegistry
from avd_generator.sources.kubehunter import (
    generate_kube_hunter_pages,
    parse_kube_hunter_doc,
    render_kube_hunter_doc,
    split_front_matter,
)

KHV002 = """\
---
vid: KHV002
title: Kubernetes version disclosure
categories: [Information Disclosure]
---

# {{ page.vid }} - {{ page.title }}

## Issue description

The fact that your infrastructure is using Kubernetes, and the specific version, is publicly available.

## Remediation

Disable `--enable-debugging-handlers` kubelet flag.

## References

- [Kubelet flags](https://kubernetes.io/docs/reference/command-line-tools-reference/kubelet/)
"""


@pytest.fixture
def kb_dir(tmp_path):
    kb = tmp_path / "kube-hunter" / "docs" / "_kb"
    kb.mkdir(parents=True)
    (kb / "KHV002.md").write_text(KHV002, encoding="utf-8")
    return kb


def test_split_front_matter_requires_fences():
    assert split_front_matter("---\na: 1\n---\nbody") == ("a: 1", "body")
    with pytest.raises(ValueError):
        split_front_matter("no fences here")
    with pytest.raises(ValueError):
        split_front_matter("---\na: 1\n")


def test_doc_without_front_matter_is_a_parse_error(tmp_path):
    path = tmp_path / "KHV999.md"
    path.write_text("# just markdown\n", encoding="utf-8")
    with pytest.raises(RecordParseError):
        parse_kube_hunter_doc(path)


def test_render_rewrites_front_matter_and_headings(kb_dir):
    page = render_kube_hunter_doc(parse_kube_hunter_doc(kb_dir / "KHV002.md"))

    _, front, body = page.split("---\n", 2)
    meta = yaml.safe_load(front)
    assert meta["id"] == "KHV002"
    assert meta["types"] == ["Information Disclosure"]
    assert meta["shortName"] == "Kubernetes version disclosure"
    assert meta["aliases"] == ["/kube-hunter/khv002"]
    assert "vid" not in meta and "categories" not in meta

    assert "{{ page.vid }}" not in body
    assert "### Kubernetes version disclosure\n" in body
    assert "### Recommended Actions\n" in body
    assert "### Links\n" in body
    assert "## Issue description" not in body


def test_only_front_matter_keys_are_renamed(tmp_path):
    path = tmp_path / "KHV050.md"
    path.write_text("---\nvid: KHV050\ntitle: Read access\n---\nThe vid field and categories: stay in prose.\n",
                    encoding="utf-8")
    page = render_kube_hunter_doc(parse_kube_hunter_doc(path))
    assert "The vid field and categories: stay in prose." in page


def test_generate_writes_pages_index_and_registers_menu(tmp_path, kb_dir):
    (kb_dir / "_index.md").write_text("---\ntitle: kb\n---\n", encoding="utf-8")
    posts_dir = tmp_path / "content" / "misconfig" / "kubernetes" / "kubehunter"
    menu = MenuRegistry("misconfig", tmp_path / "content" / "misconfig")

    stats = generate_kube_hunter_pages(kb_dir, posts_dir, misconfig_menu=menu)

    assert (stats.seen, stats.written) == (1, 1)
    assert (posts_dir / "KHV002.md").exists()
    index = yaml.safe_load((posts_dir / "_index.md").read_text(encoding="utf-8").split("---\n")[1])
    assert index["menu"]["misconfig"] == {"identifier": "kubehunter", "name": "Kube Hunter",
                                          "parent": "kubernetes"}
    assert ("kubernetes",) in menu.sections

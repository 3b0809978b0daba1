"""
menu.py
-------
Section index pages (_index.md) for the site navigation.

TopLevelMenu writes one index page. MenuRegistry collects the sections a
generator pass touched (e.g. misconfig/kubernetes) and writes one index per
section when the caller asks for it; registries are plain objects owned by the
caller, never module state.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml

log = logging.getLogger(__name__)

INDEX_FILE = "_index.md"

# Display names for section ids that do not title-case well
SECTION_NAMES = {
    "aws":        "AWS",
    "gcp":        "GCP",
    "k8s":        "Kubernetes",
    "kubernetes": "Kubernetes",
    "cis":        "CIS",
    "nsa":        "NSA",
}


def section_name(section_id: str) -> str:
    return SECTION_NAMES.get(section_id.lower(), section_id.replace("-", " ").replace("_", " ").title())


def front_matter(values: dict) -> str:
    body = yaml.safe_dump(values, sort_keys=False, default_flow_style=False, allow_unicode=True)
    return f"---\n{body}---\n"


@dataclass
class TopLevelMenu:
    title:       str
    page_type:   str
    path:        Path
    heading:     str = ""
    icon:        str = ""
    category:    str = ""
    menu:        str = ""
    menu_id:     str = ""
    menu_parent: str = ""

    def front_matter_values(self) -> dict:
        values = {"title": self.title, "draft": False, "avd_page_type": self.page_type}
        if self.heading:
            values["heading"] = self.heading
        if self.icon:
            values["icon"] = self.icon
        if self.category:
            values["category"] = self.category
        if self.menu or self.menu_id:
            entry = {"identifier": self.menu_id or self.menu.lower(), "name": self.menu or self.title}
            if self.menu_parent:
                entry["parent"] = self.menu_parent
            values["menu"] = {self.category or "main": entry}
        return values

    def render(self) -> str:
        return front_matter(self.front_matter_values())

    def generate(self) -> Path:
        """Write the index page. Raises OSError."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(self.render(), encoding="utf-8")
        log.debug(f"  Wrote menu {self.path}")
        return self.path


@dataclass
class MenuRegistry:
    category:    str
    content_dir: Path
    sections:    dict[tuple, str] = field(default_factory=dict)

    def add(self, *parts: str, name: str = "") -> tuple:
        """Register content_dir/<parts...> as a section; parents are registered too."""
        parts = tuple(p for p in parts if p)
        for depth in range(1, len(parts) + 1):
            key = parts[:depth]
            if key not in self.sections or (depth == len(parts) and name):
                self.sections[key] = name if depth == len(parts) and name else section_name(key[-1])
        return parts

    def merge(self, other: "MenuRegistry") -> "MenuRegistry":
        for key, name in other.sections.items():
            self.sections.setdefault(key, name)
        return self

    def menus(self) -> list[TopLevelMenu]:
        items = []
        for key in sorted(self.sections):
            parent = key[-2] if len(key) > 1 else self.category
            items.append(TopLevelMenu(
                title       = self.sections[key],
                page_type   = "avd_list",
                path        = self.content_dir.joinpath(*key) / INDEX_FILE,
                heading     = self.sections[key],
                category    = self.category,
                menu        = self.sections[key],
                menu_id     = key[-1],
                menu_parent = parent,
            ))
        return items

    def generate(self) -> list[Path]:
        return [menu.generate() for menu in self.menus()]


def create_top_level_menus(content_dir: Path) -> list[Path]:
    return [
        TopLevelMenu("Misconfiguration", "toplevel_page", content_dir / "misconfig" / INDEX_FILE,
                     heading="Misconfiguration Categories", icon="aqua", category="misconfig").generate(),
        TopLevelMenu("Compliance", "toplevel_page", content_dir / "compliance" / INDEX_FILE,
                     heading="Compliance", icon="aqua", category="compliance").generate(),
    ]

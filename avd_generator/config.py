"""
config.py
---------
Resolves generator.yaml + .env + environment overrides into one GeneratorConfig.

Precedence (highest first):
  1. AVD_* environment variables (a .env file is loaded first, shell wins)
  2. generator.yaml  (settings: / paths:)
  3. built-in defaults below

Every generator takes the resolved GeneratorConfig (or plain paths) explicitly;
nothing below this module reads the environment.
"""

import logging
import os
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

from avd_generator.errors import ConfigError

log = logging.getLogger(__name__)

DEFAULT_CONFIG = Path("generator.yaml")
FIRST_NVD_YEAR = 1999

# paths: keys accepted in generator.yaml, with their defaults (relative to root)
DEFAULT_PATHS = {
    "nvd_dir":               "vuln-list/nvd",
    "cwe_dir":               "vuln-list/cwe",
    "cvelist_dir":           "vuln-list/cvelist",
    "nvd_posts_dir":         "content/nvd",
    "rego_policy_dirs":      ["appshield-repo/policies/kubernetes/policy"],
    "rego_posts_dir":        "content/appshield",
    "kube_hunter_dir":       "kube-hunter/docs/_kb",
    "kube_hunter_posts_dir": "content/misconfig/kubernetes/kubehunter",
    "cloudsploit_dir":              "cloudsploit-repo/plugins",
    "cloudsploit_remediations_dir": "remediations-repo/en",
    "defsec_docs_dir":       "trivy-policies-repo/avd_docs",
    "misconfig_posts_dir":   "content/misconfig",
    "compliance_dir":        "trivy-policies-repo/pkg/compliance",
    "compliance_posts_dir":  "content/compliance",
    "content_dir":           "content",
}

ENV_OVERRIDES = {
    "AVD_WORKERS":    ("workers", int),
    "AVD_LOG_LEVEL":  ("log_level", str),
    "AVD_FIRST_YEAR": ("first_year", int),
    "AVD_LAST_YEAR":  ("last_year", int),
}

# settings: keys accepted in generator.yaml, with the type each must resolve to
SETTING_TYPES = {
    "workers":    int,
    "first_year": int,
    "last_year":  int,
    "progress":   bool,
    "log_level":  str,
}


@dataclass(frozen=True)
class GeneratorConfig:
    root:                  Path = Path(".")
    workers:               int = 4
    first_year:            int = FIRST_NVD_YEAR
    last_year:             int = field(default_factory=lambda: datetime.now().year)
    progress:              bool = True
    log_level:             str = "INFO"

    nvd_dir:               Path = Path(DEFAULT_PATHS["nvd_dir"])
    cwe_dir:               Path = Path(DEFAULT_PATHS["cwe_dir"])
    cvelist_dir:           Path = Path(DEFAULT_PATHS["cvelist_dir"])
    nvd_posts_dir:         Path = Path(DEFAULT_PATHS["nvd_posts_dir"])
    rego_policy_dirs:      tuple = tuple(Path(p) for p in DEFAULT_PATHS["rego_policy_dirs"])
    rego_posts_dir:        Path = Path(DEFAULT_PATHS["rego_posts_dir"])
    kube_hunter_dir:       Path = Path(DEFAULT_PATHS["kube_hunter_dir"])
    kube_hunter_posts_dir: Path = Path(DEFAULT_PATHS["kube_hunter_posts_dir"])
    cloudsploit_dir:       Path = Path(DEFAULT_PATHS["cloudsploit_dir"])
    cloudsploit_remediations_dir: Path = Path(DEFAULT_PATHS["cloudsploit_remediations_dir"])
    defsec_docs_dir:       Path = Path(DEFAULT_PATHS["defsec_docs_dir"])
    misconfig_posts_dir:   Path = Path(DEFAULT_PATHS["misconfig_posts_dir"])
    compliance_dir:       Path = Path(DEFAULT_PATHS["compliance_dir"])
    compliance_posts_dir:  Path = Path(DEFAULT_PATHS["compliance_posts_dir"])
    content_dir:           Path = Path(DEFAULT_PATHS["content_dir"])

    @property
    def years(self) -> list[str]:
        """Every NVD partition, oldest first."""
        return [str(y) for y in range(self.first_year, self.last_year + 1)]


# ── Loading ────────────────────────────────────────────────────────────────────

def _read_yaml(path: Path) -> dict:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"unable to read {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return data


def _resolve_paths(root: Path, paths: dict) -> dict:
    unknown = set(paths) - set(DEFAULT_PATHS)
    if unknown:
        raise ConfigError(f"unknown paths: {', '.join(sorted(unknown))}")

    merged = {**DEFAULT_PATHS, **paths}
    resolved = {}
    for key, value in merged.items():
        if key == "rego_policy_dirs":
            if isinstance(value, str):
                value = [value]
            if not isinstance(value, list) or not all(isinstance(p, str) for p in value):
                raise ConfigError(f"paths.{key}: expected a path or a list of paths, got {value!r}")
            resolved[key] = tuple(root / p for p in value)
        elif isinstance(value, str):
            resolved[key] = root / value
        else:
            raise ConfigError(f"paths.{key}: expected a path, got {value!r}")
    return resolved


def _typed_settings(settings: dict) -> dict:
    """Cast numeric strings ("4") to int; anything else of the wrong type is a ConfigError."""
    typed = {}
    for key, value in settings.items():
        if value is None:
            continue
        kind = SETTING_TYPES[key]
        if kind is int and not isinstance(value, bool):
            try:
                typed[key] = int(value)
                continue
            except (TypeError, ValueError):
                pass
        elif isinstance(value, kind):
            typed[key] = value
            continue
        raise ConfigError(f"settings.{key}: expected {kind.__name__}, got {value!r}")
    return typed


def _apply_env(settings: dict, env) -> dict:
    settings = dict(settings)
    for var, (key, cast) in ENV_OVERRIDES.items():
        raw = env.get(var)
        if raw in (None, ""):
            continue
        try:
            settings[key] = cast(raw)
        except ValueError as exc:
            raise ConfigError(f"{var}={raw!r} is not a valid {cast.__name__}") from exc
    return settings


def load_config(path: Optional[Path] = None, env=None, dotenv_path: Optional[Path] = None) -> GeneratorConfig:
    """
    Build a GeneratorConfig.

    path=None looks for ./generator.yaml and falls back to defaults when it is
    absent; an explicit path that does not exist is a ConfigError.
    """
    if env is None:
        env_file = dotenv_path or Path(".env")
        if env_file.exists():
            load_dotenv(dotenv_path=env_file, override=False)
            log.debug(f"Loaded {env_file}")
        env = os.environ

    if path is None and DEFAULT_CONFIG.exists():
        path = DEFAULT_CONFIG
    if path is None:
        data = {}
    else:
        if not path.exists():
            raise ConfigError(f"config not found: {path}")
        data = _read_yaml(path)

    settings = data.get("settings") or {}
    paths    = data.get("paths") or {}
    if not isinstance(settings, dict) or not isinstance(paths, dict):
        raise ConfigError("settings: and paths: must be mappings")

    unknown = set(settings) - set(SETTING_TYPES)
    if unknown:
        raise ConfigError(f"unknown settings: {', '.join(sorted(unknown))}")

    settings = _apply_env(_typed_settings(settings), env)
    if env.get("AVD_ROOT"):
        root = Path(env["AVD_ROOT"])
    else:
        # a root: in the file is relative to the file itself
        root_value = data.get("root") or "."
        if not isinstance(root_value, str):
            raise ConfigError(f"root: expected a path, got {root_value!r}")
        root = Path(root_value)
        if path is not None and not root.is_absolute():
            root = path.parent / root

    config = GeneratorConfig(root=root, **_resolve_paths(root, paths))
    config = replace(config, **settings)

    if config.workers < 1:
        raise ConfigError(f"workers must be >= 1, got {config.workers}")
    if config.first_year > config.last_year:
        raise ConfigError(f"first_year {config.first_year} is after last_year {config.last_year}")
    return config

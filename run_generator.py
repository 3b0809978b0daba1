#!/usr/bin/env python3
"""
run_generator.py  —  AVD Content Generator (Master Orchestrator)
=================================================================
Runs every page generator in order and prints a summary.

Steps:
  VULNERABILITIES
    1.  NVD               vuln-list/nvd/<year>/*.json       → content/nvd/CVE-*.md
    2.  Reserved CVEs     vuln-list/cvelist/<year>/**.json  → content/nvd/CVE-*.md (new ids only)

  MISCONFIGURATION
    3.  Rego policies     appshield policies/*.rego         → content/appshield/<id>.md
    4.  Kube-hunter       kube-hunter/docs/_kb/*.md         → content/misconfig/kubernetes/kubehunter/
    5.  CloudSploit       plugins/<provider>/<service>/*.js → content/misconfig/<provider>/<service>/
    6.  Trivy checks      avd_docs/<provider>/<service>/*/docs.md → content/misconfig/<provider>/<service>/

  COMPLIANCE
    7.  Compliance specs  pkg/compliance/*.yaml             → content/compliance/<platform>/<id>.md

  MENUS
    8.  Section indexes   content/misconfig/_index.md, content/compliance/_index.md, …

Usage:
    python run_generator.py                       # everything
    python run_generator.py --only nvd            # one step
    python run_generator.py --skip reserved       # everything but one step
    python run_generator.py --workers 8           # NVD / reserved year pool size
    python run_generator.py --config other.yaml
    python run_generator.py --dry-run             # show plan without executing
    python run_generator.py --continue-on-error   # keep going after a failed step

Exit status is 1 when any step failed.
"""

import argparse
import logging
import sys
import time
import traceback
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import Optional

from avd_generator.config import GeneratorConfig, load_config
from avd_generator.errors import GeneratorError
from avd_generator.menu import MenuRegistry, create_top_level_menus
from avd_generator.sources.cloudsploit import generate_cloudsploit_pages
from avd_generator.sources.compliance import generate_compliance_pages
from avd_generator.sources.defsec import generate_defsec_pages
from avd_generator.sources.kubehunter import generate_kube_hunter_pages
from avd_generator.sources.nvd import generate_vuln_pages
from avd_generator.sources.rego import generate_rego_policy_pages
from avd_generator.sources.reserved import generate_all_reserved_pages
from avd_generator.transform import PartitionResult, TransformStats

log = logging.getLogger("avd_generator")


# ──────────────────────────────────────────────────────────────────────────────
# COLOURS
# ──────────────────────────────────────────────────────────────────────────────

class C:
    H  = "\033[95m"   # header/magenta
    B  = "\033[94m"   # blue
    G  = "\033[92m"   # green
    Y  = "\033[93m"   # yellow
    R  = "\033[91m"   # red
    BD = "\033[1m"    # bold
    DM = "\033[2m"    # dim
    _  = "\033[0m"    # reset


# ──────────────────────────────────────────────────────────────────────────────
# RUN CONTEXT  (what one invocation shares between steps)
# ──────────────────────────────────────────────────────────────────────────────

@dataclass
class RunContext:
    config:          GeneratorConfig
    misconfig_menu:  MenuRegistry
    compliance_menu: MenuRegistry

    @classmethod
    def from_config(cls, config: GeneratorConfig) -> "RunContext":
        return cls(
            config          = config,
            misconfig_menu  = MenuRegistry("misconfig",  config.content_dir / "misconfig"),
            compliance_menu = MenuRegistry("compliance", config.content_dir / "compliance"),
        )


@dataclass
class StepOutcome:
    """What a step function hands back: a one-line summary and any partition failures."""
    stats:    str = ""
    failures: list[str] = field(default_factory=list)


def _partition_outcome(results: list[PartitionResult]) -> StepOutcome:
    total = TransformStats(source="all")
    for r in results:
        if r.ok:
            total.merge(r.stats)
    ok = sum(1 for r in results if r.ok)
    return StepOutcome(
        stats    = f"{total.summary()} ({ok}/{len(results)} years)",
        failures = [f"{r.name}: {r.error}" for r in results if not r.ok],
    )


# ──────────────────────────────────────────────────────────────────────────────
# STEP FUNCTIONS
# ──────────────────────────────────────────────────────────────────────────────

def step_nvd(ctx: RunContext) -> StepOutcome:
    return _partition_outcome(generate_vuln_pages(ctx.config))


def step_reserved(ctx: RunContext) -> StepOutcome:
    return _partition_outcome(generate_all_reserved_pages(ctx.config))


def step_rego(ctx: RunContext) -> StepOutcome:
    total = TransformStats(source="rego")
    for policy_dir in ctx.config.rego_policy_dirs:
        total.merge(generate_rego_policy_pages(policy_dir, ctx.config.rego_posts_dir,
                                               progress=ctx.config.progress))
    return StepOutcome(stats=total.summary())


def step_kube_hunter(ctx: RunContext) -> StepOutcome:
    stats = generate_kube_hunter_pages(ctx.config.kube_hunter_dir, ctx.config.kube_hunter_posts_dir,
                                       misconfig_menu=ctx.misconfig_menu, progress=ctx.config.progress)
    return StepOutcome(stats=stats.summary())


def step_cloudsploit(ctx: RunContext) -> StepOutcome:
    stats = generate_cloudsploit_pages(ctx.config.cloudsploit_dir, ctx.config.misconfig_posts_dir,
                                       ctx.config.cloudsploit_remediations_dir,
                                       misconfig_menu=ctx.misconfig_menu, progress=ctx.config.progress)
    return StepOutcome(stats=stats.summary())


def step_defsec(ctx: RunContext) -> StepOutcome:
    stats = generate_defsec_pages(ctx.config.defsec_docs_dir, ctx.config.misconfig_posts_dir,
                                  misconfig_menu=ctx.misconfig_menu, progress=ctx.config.progress)
    return StepOutcome(stats=stats.summary())


def step_compliance(ctx: RunContext) -> StepOutcome:
    stats = generate_compliance_pages(ctx.config.compliance_dir, ctx.config.compliance_posts_dir,
                                      compliance_menu=ctx.compliance_menu, progress=ctx.config.progress)
    return StepOutcome(stats=stats.summary())


def step_menus(ctx: RunContext) -> StepOutcome:
    written  = create_top_level_menus(ctx.config.content_dir)
    written += ctx.misconfig_menu.generate()
    written += ctx.compliance_menu.generate()
    return StepOutcome(stats=f"{len(written)} index pages")


# ──────────────────────────────────────────────────────────────────────────────
# STEP TABLE  (ordered)
# ──────────────────────────────────────────────────────────────────────────────

STEPS = [
    {"step": 1, "key": "nvd",         "phase": "vulnerabilities",
     "name": "NVD vulnerability pages (+ CWE enrichment)",  "fn": step_nvd},
    {"step": 2, "key": "reserved",    "phase": "vulnerabilities",
     "name": "Reserved CVE placeholder pages",              "fn": step_reserved},
    {"step": 3, "key": "rego",        "phase": "misconfig",
     "name": "Rego policy pages",                           "fn": step_rego},
    {"step": 4, "key": "kube-hunter", "phase": "misconfig",
     "name": "Kube-hunter documentation pages",             "fn": step_kube_hunter},
    {"step": 5, "key": "cloudsploit", "phase": "misconfig",
     "name": "CloudSploit plugin pages",                    "fn": step_cloudsploit},
    {"step": 6, "key": "defsec",      "phase": "misconfig",
     "name": "Trivy check documentation pages",             "fn": step_defsec},
    {"step": 7, "key": "compliance",  "phase": "compliance",
     "name": "Compliance spec pages",                       "fn": step_compliance},
    {"step": 8, "key": "menus",      "phase": "menus",
     "name": "Section index pages",                         "fn": step_menus},
]

STEP_KEYS   = [s["key"] for s in STEPS]
TOTAL_STEPS = len(STEPS)
PHASE_COLOURS = {"vulnerabilities": C.B, "misconfig": C.Y, "compliance": C.G, "menus": C.H}


# ──────────────────────────────────────────────────────────────────────────────
# STEP RUNNER
# ──────────────────────────────────────────────────────────────────────────────

def _run_step(step_def: dict, ctx: RunContext, dry_run: bool = False) -> dict:
    """Call the step function, return result dict. Never raises."""
    result = {
        "step":    step_def["step"],
        "name":    step_def["name"],
        "phase":   step_def["phase"],
        "status":  "pending",
        "elapsed": 0.0,
        "stats":   "",
    }

    if dry_run:
        result["status"] = "would-run"
        return result

    t0 = time.time()
    try:
        outcome: StepOutcome = step_def["fn"](ctx)
    except (GeneratorError, OSError) as exc:
        result["elapsed"] = time.time() - t0
        result["status"]  = "failed"
        result["error"]   = str(exc)
        print(f"\n    {C.R}ERROR: {exc}{C._}")
        log.debug(traceback.format_exc())
        return result
    except Exception as exc:
        result["elapsed"] = time.time() - t0
        result["status"]  = "failed"
        result["error"]   = f"{type(exc).__name__}: {exc}"
        print(f"\n    {C.R}ERROR: {result['error']}{C._}")
        traceback.print_exc()
        return result

    result["elapsed"] = time.time() - t0
    result["stats"]   = outcome.stats
    if outcome.failures:
        result["status"] = "partial"
        result["error"]  = "; ".join(outcome.failures)
    else:
        result["status"] = "success"
    return result


# ──────────────────────────────────────────────────────────────────────────────
# DISPLAY HELPERS
# ──────────────────────────────────────────────────────────────────────────────

def _banner(config: GeneratorConfig):
    print(f"""{C.BD}{C.B}
╔═══════════════════════════════════════════════════════════════╗
║          AVD Content Generator  —  Master Orchestrator        ║
╚═══════════════════════════════════════════════════════════════╝{C._}

  {C.DM}Started : {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}
  Root    : {config.root.resolve()}
  Years   : {config.first_year}–{config.last_year}  ({config.workers} workers){C._}
""")


def _print_phase_header(phase: str):
    c = PHASE_COLOURS.get(phase, C.B)
    print(f"\n{c}{C.BD}{'═' * 64}")
    print(f"  PHASE: {phase.upper()}")
    print(f"{'═' * 64}{C._}")


def _print_step_header(step_def: dict):
    print(f"\n  {C.BD}[{step_def['step']:2d}/{TOTAL_STEPS}]{C._}  {step_def['name']}")
    print(f"  {C.DM}{'─' * 56}{C._}")


def _print_summary(results: list[dict]):
    print(f"\n\n{C.BD}{C.G}{'═' * 64}")
    print("  GENERATOR SUMMARY")
    print(f"{'═' * 64}{C._}\n")

    total_time = 0.0
    passed = failed = skipped = partial = 0

    for r in results:
        total_time += r["elapsed"]
        if r["status"] == "success":
            icon = f"{C.G}✔{C._}"; passed += 1
        elif r["status"] == "partial":
            icon = f"{C.Y}◐{C._}"; partial += 1
        elif r["status"] in ("skipped", "would-run"):
            icon = f"{C.Y}⊘{C._}"; skipped += 1
        else:
            icon = f"{C.R}✗{C._}"; failed += 1

        t = f"{r['elapsed']:.1f}s" if r["elapsed"] > 0 else ""
        print(f"    {icon}  {r['step']:2d}. {r['name']:<48s} {t}")
        if r.get("stats"):
            print(f"         {C.DM}{r['stats']}{C._}")
        if r.get("error"):
            print(f"         {C.R}{r['error']}{C._}")

    print(f"\n  {'─' * 56}")
    print(f"  Total time : {total_time:.1f}s ({total_time / 60:.1f} min)")
    print(f"  {C.G}Passed: {passed}{C._}   {C.Y}Partial: {partial}{C._}   "
          f"{C.R}Failed: {failed}{C._}   {C.Y}Skipped: {skipped}{C._}")
    print()


# ──────────────────────────────────────────────────────────────────────────────
# MAIN
# ──────────────────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="AVD content generator — NVD / policies / docs → markdown pages",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config",      type=Path, default=None,
                        help="Path to generator.yaml (default: ./generator.yaml if present)")
    parser.add_argument("--only",        choices=STEP_KEYS,
                        help="Run only one step")
    parser.add_argument("--skip",        choices=STEP_KEYS, action="append", default=[],
                        help="Skip a step (repeatable)")
    parser.add_argument("--workers",     type=int, default=None,
                        help="Worker threads for per-year steps (overrides config)")
    parser.add_argument("--dry-run",     action="store_true",
                        help="Show plan without executing anything")
    parser.add_argument("--continue-on-error", action="store_true",
                        help="Keep running after a step fails")
    parser.add_argument("--no-progress", action="store_true",
                        help="Disable progress bars")
    parser.add_argument("--log-level",   default=None,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level (overrides config)")
    return parser


def run(steps: list[dict], ctx: RunContext, dry_run: bool = False,
        continue_on_error: bool = False, only: Optional[str] = None,
        skip: Optional[list[str]] = None) -> list[dict]:
    skip = skip or []
    results:    list[dict] = []
    last_phase: Optional[str] = None

    for step_def in steps:
        skip_reason = None
        if only and step_def["key"] != only:
            skip_reason = f"--only {only}"
        elif step_def["key"] in skip:
            skip_reason = f"--skip {step_def['key']}"

        if skip_reason:
            results.append({
                "step": step_def["step"], "name": step_def["name"],
                "phase": step_def["phase"], "status": "skipped", "elapsed": 0.0, "stats": "",
            })
            continue

        if step_def["phase"] != last_phase:
            _print_phase_header(step_def["phase"])
            last_phase = step_def["phase"]
        _print_step_header(step_def)

        result = _run_step(step_def, ctx, dry_run=dry_run)
        results.append(result)

        if result["status"] == "success":
            print(f"  {C.G}✔ Done in {result['elapsed']:.1f}s{C._}")
            if result["stats"]:
                print(f"    {C.DM}{result['stats']}{C._}")
        elif result["status"] == "partial":
            print(f"  {C.Y}◐ Done with failed partitions in {result['elapsed']:.1f}s{C._}")
        elif result["status"] == "failed":
            print(f"  {C.R}✗ Failed after {result['elapsed']:.1f}s{C._}")
            if not continue_on_error:
                print(f"\n  {C.R}Generator stopped at step {step_def['step']}.")
                print(f"  Use --continue-on-error to keep going.{C._}")
                break
        else:
            print(f"  {C.Y}⊘ {result['status']}{C._}")

    return results


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except GeneratorError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 2

    overrides = {}
    if args.workers is not None:
        overrides["workers"] = max(1, args.workers)
    if args.no_progress:
        overrides["progress"] = False
    if args.log_level:
        overrides["log_level"] = args.log_level
    config = replace(config, **overrides)

    logging.basicConfig(level=getattr(logging, config.log_level.upper(), logging.INFO),
                        format="%(levelname)s  %(message)s")

    _banner(config)
    results = run(STEPS, RunContext.from_config(config), dry_run=args.dry_run,
                  continue_on_error=args.continue_on_error, only=args.only, skip=args.skip)
    _print_summary(results)
    return 1 if any(r["status"] == "failed" for r in results) else 0


if __name__ == "__main__":
    sys.exit(main())

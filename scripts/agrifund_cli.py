#!/usr/bin/env python3
"""
AgriFund engine command line.

Creates the schema, seeds the culture catalog from YAML and prints project
summaries.  Settings come from agrifund_config (DATABASE_URL overrides the
file's URL).

Usage:
    python3 scripts/agrifund_cli.py init-db
    python3 scripts/agrifund_cli.py seed-catalog [--catalog PATH]
    python3 scripts/agrifund_cli.py show-project PROJECT_ID [--json]
    python3 scripts/agrifund_cli.py list-projects [--status funding]
"""

import argparse
import json
import sys
from dataclasses import asdict
from pathlib import Path
from uuid import UUID

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

W = 72


def hline(char: str = "=") -> str:
    return char * W


def field(name: str, value, indent: int = 2) -> None:
    print(f"{' ' * indent}{name}: {value}")


def _engine(args):
    from agrifund_config import get_active_config
    from agrifund_services import LifecycleEngine

    settings = get_active_config(args.config)
    return settings, LifecycleEngine.from_settings(settings)


def cmd_init_db(args) -> int:
    from agrifund_kernel.db.engine import create_tables

    _engine(args)
    create_tables()
    print("Tables created.")
    return 0


def cmd_seed_catalog(args) -> int:
    from agrifund_config import load_catalog
    from agrifund_config.bridges import seed_catalog
    from agrifund_kernel.db.engine import create_tables, session_scope

    settings, _ = _engine(args)
    path = Path(args.catalog) if args.catalog else settings.catalog_path
    if path is None:
        print("No catalog path given and none configured.", file=sys.stderr)
        return 2

    catalog = load_catalog(path)
    create_tables()
    with session_scope() as session:
        result = seed_catalog(session, catalog)

    if result.is_noop:
        print(f"Catalog {path.name} already seeded.")
    else:
        print(
            f"Seeded {result.cultures_created} culture(s), "
            f"{result.templates_created} milestone template(s), "
            f"{result.cost_references_created} cost reference(s)."
        )
    return 0


def cmd_show_project(args) -> int:
    from agrifund_kernel.exceptions import NotFoundError

    _, engine = _engine(args)
    try:
        project_id = UUID(args.project_id)
    except ValueError:
        print(f"Not a project id: {args.project_id}", file=sys.stderr)
        return 2

    try:
        summary = engine.project_summary(project_id)
        milestones = engine.milestone_list(project_id)
    except NotFoundError as e:
        print(f"{e.code}: {e}", file=sys.stderr)
        return 1

    if args.json:
        payload = {
            "summary": asdict(summary),
            "milestones": [asdict(m) for m in milestones],
        }
        print(json.dumps(payload, default=str, indent=2))
        return 0

    project = summary.project
    funding = summary.funding
    print(hline())
    print(f"  {project.title or project.id}")
    print(hline())
    field("Status", project.status.value)
    field("Surface (ha)", project.surface_ha)
    field("Cost target", funding.cost_target if funding.cost_target is not None else "-")
    field("Funded", f"{funding.current_funding} ({funding.percentage}%)")
    field("Gap", funding.gap)
    field("Launch date", project.launch_date or "-")

    if milestones:
        print()
        print(hline("-"))
        for m in milestones:
            actual = m.actual_date.isoformat() if m.actual_date else "-"
            print(
                f"  {m.projected_date.isoformat()}  {m.name:<24} "
                f"{m.classification.value:<10} {actual:<10} {m.payment_status.value}"
            )
    return 0


def cmd_list_projects(args) -> int:
    from agrifund_kernel.domain.dtos import ProjectStatus

    _, engine = _engine(args)
    status = ProjectStatus(args.status) if args.status else None
    for project in engine.list_projects(status=status):
        print(f"{project.id}  {project.status.value:<14} {project.title}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="AgriFund engine tools")
    parser.add_argument("--config", help="Settings YAML (default: agrifund_config/sets/default.yaml)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("init-db", help="Create all tables")
    p.set_defaults(func=cmd_init_db)

    p = sub.add_parser("seed-catalog", help="Seed cultures and milestone templates")
    p.add_argument("--catalog", help="Catalog YAML (default: from settings)")
    p.set_defaults(func=cmd_seed_catalog)

    p = sub.add_parser("show-project", help="Print a project summary and calendar")
    p.add_argument("project_id")
    p.add_argument("--json", action="store_true", help="Output as JSON")
    p.set_defaults(func=cmd_show_project)

    p = sub.add_parser("list-projects", help="List projects")
    p.add_argument("--status", choices=[
        "pending", "funding", "rejected", "in_production", "completed",
    ])
    p.set_defaults(func=cmd_list_projects)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

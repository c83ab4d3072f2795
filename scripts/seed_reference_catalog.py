#!/usr/bin/env python3
"""Emit deterministic SQL that seeds the careers reference catalog."""

from __future__ import annotations

import argparse
import json

from careers.core.slugs import slugify

TABLES = {
    "categories": "categories",
    "locations": "locations",
    "types": "position_types",
    "levels": "levels",
    "skills": "skills",
}

DEFAULT_ENTRIES: dict[str, list[tuple[str, dict[str, object]]]] = {
    "categories": [
        ("Engineering", {"icon": "code", "color": "#2563eb"}),
        ("Design", {"icon": "palette", "color": "#db2777"}),
        ("Product", {"icon": "compass", "color": "#7c3aed"}),
        ("Marketing", {"icon": "megaphone", "color": "#ea580c"}),
        ("Operations", {"icon": "settings", "color": "#059669"}),
    ],
    "locations": [
        ("Remote", {"is_remote": True}),
        ("New York", {"city": "New York", "state": "NY", "country": "US", "timezone": "America/New_York"}),
        ("London", {"city": "London", "country": "GB", "timezone": "Europe/London"}),
        ("Berlin", {"city": "Berlin", "country": "DE", "timezone": "Europe/Berlin"}),
    ],
    "types": [
        ("Full-time", {}),
        ("Part-time", {}),
        ("Contract", {}),
        ("Internship", {}),
    ],
    "levels": [
        ("Junior", {"years_min": 0, "years_max": 2}),
        ("Mid", {"years_min": 2, "years_max": 5}),
        ("Senior", {"years_min": 5, "years_max": 8}),
        ("Lead", {"years_min": 8}),
    ],
    "skills": [
        ("Python", {"category": "language"}),
        ("PostgreSQL", {"category": "database"}),
        ("TypeScript", {"category": "language"}),
        ("Figma", {"category": "design"}),
        ("Kubernetes", {"category": "infrastructure"}),
    ],
}


def _quote_sql(value: str) -> str:
    escaped = value.replace("'", "''")
    return f"'{escaped}'"


def render_sql(*, kinds: list[str], only_missing: bool) -> str:
    statements = [
        "-- Careers reference catalog seed SQL",
        "-- Safe to re-run: rows are matched on slug.",
        "",
    ]
    for kind in kinds:
        table = TABLES[kind]
        rows = []
        for sort_order, (name, attributes) in enumerate(DEFAULT_ENTRIES[kind], start=1):
            rows.append(
                f"  ({_quote_sql(name)}, {_quote_sql(slugify(name))}, {sort_order}, "
                f"{_quote_sql(json.dumps(attributes, sort_keys=True))}::jsonb)"
            )
        if only_missing:
            conflict = "on conflict (slug) do nothing"
        else:
            conflict = (
                "on conflict (slug) do update\n"
                "set name = excluded.name, sort_order = excluded.sort_order, attributes = excluded.attributes"
            )
        statements.append(
            f"insert into {table} (name, slug, sort_order, attributes)\nvalues\n"
            + ",\n".join(rows)
            + f"\n{conflict};\n"
        )
    return "\n".join(statements)


def main() -> None:
    parser = argparse.ArgumentParser(description="Emit SQL to seed the careers reference catalog.")
    parser.add_argument(
        "--kind",
        action="append",
        choices=sorted(TABLES),
        help="Reference kind to seed; repeat for several. Defaults to every kind.",
    )
    parser.add_argument(
        "--only-missing",
        action="store_true",
        help="Leave existing rows untouched instead of refreshing them",
    )
    args = parser.parse_args()

    kinds = args.kind or list(TABLES)
    print(render_sql(kinds=kinds, only_missing=args.only_missing))


if __name__ == "__main__":
    main()

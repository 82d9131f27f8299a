#!/usr/bin/env python3
"""
Seed the marketplace database with the default skills and sample services.

Existing rows are left alone: a skill is only inserted when no skill of
the same name exists, a service only when its title is missing.  The
migrations are applied first, so this also works on an empty file.

Usage:
    python -m home_services_api.seed
    python -m home_services_api.seed --db ./home_services.db --skills-only
"""

import argparse
import asyncio
import sys

from home_services_api.app.core.config import settings
from home_services_api.app.core.db import get_database_path, init_db
from home_services_api.app.core.logging_config import setup_logging
from home_services_api.app.services.catalog_service import CatalogService
from home_services_api.app.services.skill_service import SkillService


async def seed(skills_only: bool = False) -> tuple[int, int]:
    init_db()
    skills = await SkillService.seed_default_skills()
    services = 0 if skills_only else await CatalogService.seed_default_services()
    return skills, services


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Seed default skills and services (SQLite).")
    ap.add_argument("--db", help="Path to the SQLite file (defaults to DATABASE_URL)")
    ap.add_argument("--skills-only", action="store_true", help="Do not insert the sample services")
    args = ap.parse_args(argv)

    if args.db:
        settings.database_url = args.db
    setup_logging(settings.log_level)

    skills, services = asyncio.run(seed(args.skills_only))
    print(f"[+] {get_database_path()}: added {skills} skills and {services} services")
    return 0


if __name__ == "__main__":
    sys.exit(main())

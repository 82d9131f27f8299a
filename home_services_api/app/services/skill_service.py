"""
Business logic for skills.

A skill is a named, categorised capability that providers attach to
their profile.  Names are unique regardless of case; they are trimmed
and stored lower-case.  A skill that any provider still lists cannot be
deleted, only deactivated through ``is_active``.
"""

import logging
import sqlite3
from typing import List, Optional

from home_services_api.app.core.db import get_connection, utcnow_iso
from home_services_api.app.core.errors import InvalidArgumentError, NotFoundError
from home_services_api.app.schemas.skill import SkillCreate, SkillRead, SkillUpdate

logger = logging.getLogger(__name__)

DEFAULT_SKILLS = [
    {
        "name": "AC Repair",
        "description": "Air conditioner repair and maintenance services",
        "category": "home_repair",
    },
    {
        "name": "Home Cleaning",
        "description": "Professional home cleaning services",
        "category": "cleaning",
    },
    {
        "name": "Plumbing",
        "description": "Plumbing repair and installation services",
        "category": "plumbing",
    },
    {
        "name": "Electrical",
        "description": "Electrical repair and installation services",
        "category": "electrical",
    },
    {
        "name": "Carpentry",
        "description": "Furniture repair and woodwork services",
        "category": "home_repair",
    },
    {
        "name": "Painting",
        "description": "Interior and exterior painting services",
        "category": "home_repair",
    },
    {
        "name": "Pest Control",
        "description": "Pest control and prevention services",
        "category": "other",
    },
    {
        "name": "Appliance Repair",
        "description": "Repair services for home appliances",
        "category": "home_repair",
    },
]


def normalize_skill_name(name: str) -> str:
    return name.strip().lower()


def _row_to_skill(row: sqlite3.Row) -> SkillRead:
    return SkillRead(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        category=row["category"],
        is_active=bool(row["is_active"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class SkillService:
    """Service for the skill catalogue."""

    @classmethod
    async def list_skills(cls, category: Optional[str] = None, search: Optional[str] = None) -> List[SkillRead]:
        """Return active skills sorted by name, optionally filtered."""
        query = "SELECT * FROM skills WHERE is_active = 1"
        params: list = []
        if category:
            query += " AND category = ?"
            params.append(category)
        if search:
            query += " AND name LIKE ?"
            params.append(f"%{search.strip().lower()}%")
        query += " ORDER BY name"
        conn = get_connection()
        try:
            rows = conn.execute(query, params).fetchall()
            return [_row_to_skill(row) for row in rows]
        finally:
            conn.close()

    @classmethod
    async def get_skill(cls, skill_id: int) -> SkillRead:
        conn = get_connection()
        try:
            row = conn.execute("SELECT * FROM skills WHERE id = ?", (skill_id,)).fetchone()
        finally:
            conn.close()
        if not row:
            raise NotFoundError("Skill not found")
        return _row_to_skill(row)

    @classmethod
    async def create_skill(cls, data: SkillCreate) -> SkillRead:
        """Insert a skill.  Raises ``InvalidArgumentError`` on a duplicate name."""
        name = normalize_skill_name(data.name)
        if not name:
            raise InvalidArgumentError("Skill name is required")
        now = utcnow_iso()
        conn = get_connection()
        try:
            cursor = conn.cursor()
            existing = cursor.execute("SELECT id FROM skills WHERE name = ?", (name,)).fetchone()
            if existing:
                raise InvalidArgumentError("Skill with this name already exists")
            cursor.execute(
                "INSERT INTO skills (name, description, category, is_active, created_at, updated_at) "
                "VALUES (?, ?, ?, 1, ?, ?)",
                (name, data.description, data.category, now, now),
            )
            skill_id = cursor.lastrowid
            conn.commit()
            row = cursor.execute("SELECT * FROM skills WHERE id = ?", (skill_id,)).fetchone()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        logger.info("Skill %s created (%s)", skill_id, name)
        return _row_to_skill(row)

    @classmethod
    async def update_skill(cls, skill_id: int, data: SkillUpdate) -> SkillRead:
        """Apply provided fields; renaming keeps names unique."""
        fields = data.model_dump(exclude_unset=True)
        conn = get_connection()
        try:
            cursor = conn.cursor()
            row = cursor.execute("SELECT * FROM skills WHERE id = ?", (skill_id,)).fetchone()
            if not row:
                raise NotFoundError("Skill not found")
            if "name" in fields and fields["name"] is not None:
                fields["name"] = normalize_skill_name(fields["name"])
                if not fields["name"]:
                    raise InvalidArgumentError("Skill name is required")
                clash = cursor.execute(
                    "SELECT id FROM skills WHERE name = ? AND id != ?",
                    (fields["name"], skill_id),
                ).fetchone()
                if clash:
                    raise InvalidArgumentError("Skill with this name already exists")
            updates = {key: value for key, value in fields.items() if value is not None}
            if "is_active" in updates:
                updates["is_active"] = 1 if updates["is_active"] else 0
            if updates:
                updates["updated_at"] = utcnow_iso()
                assignments = ", ".join(f"{column} = ?" for column in updates)
                cursor.execute(
                    f"UPDATE skills SET {assignments} WHERE id = ?",
                    (*updates.values(), skill_id),
                )
                conn.commit()
            row = cursor.execute("SELECT * FROM skills WHERE id = ?", (skill_id,)).fetchone()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        return _row_to_skill(row)

    @classmethod
    async def delete_skill(cls, skill_id: int) -> None:
        """Delete an unused skill.

        Raises
        ------
        NotFoundError
            If the skill does not exist.
        InvalidArgumentError
            If any provider's skill list still references it.
        """
        conn = get_connection()
        try:
            cursor = conn.cursor()
            row = cursor.execute("SELECT id FROM skills WHERE id = ?", (skill_id,)).fetchone()
            if not row:
                raise NotFoundError("Skill not found")
            in_use = cursor.execute(
                "SELECT COUNT(*) FROM user_skills WHERE skill_id = ?", (skill_id,)
            ).fetchone()[0]
            if in_use:
                raise InvalidArgumentError(
                    "Cannot delete skill as it is being used by service providers"
                )
            cursor.execute("DELETE FROM skills WHERE id = ?", (skill_id,))
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        logger.info("Skill %s deleted", skill_id)

    @classmethod
    async def seed_default_skills(cls) -> int:
        """Insert the default skills that are missing; return how many were added."""
        now = utcnow_iso()
        added = 0
        conn = get_connection()
        try:
            cursor = conn.cursor()
            for skill in DEFAULT_SKILLS:
                name = normalize_skill_name(skill["name"])
                if cursor.execute("SELECT id FROM skills WHERE name = ?", (name,)).fetchone():
                    continue
                cursor.execute(
                    "INSERT INTO skills (name, description, category, is_active, created_at, updated_at) "
                    "VALUES (?, ?, ?, 1, ?, ?)",
                    (name, skill["description"], skill["category"], now, now),
                )
                added += 1
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        logger.info("Seeded %d default skills", added)
        return added

"""
Business logic for users, authentication and provider skills.

The mobile number is the unique business key of a user.  Registration
hands out the ``customer`` role unless another one is requested;
``admin`` is only granted to bootstrap the first administrator.

A provider's skill list is replaced as a whole by ``update_user_skills``
and always ends up with exactly one primary skill: the one flagged by
the client, or the first entry when none is flagged.
"""

import logging
import math
import sqlite3
from datetime import datetime
from typing import Any, Dict, List, Optional

from home_services_api.app.core.db import get_connection, parse_timestamp, utcnow_iso
from home_services_api.app.core.errors import (
    ConflictError,
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
    UnauthorizedError,
)
from home_services_api.app.core.security import (
    ROLE_ADMIN,
    ROLE_PROVIDER,
    create_access_token,
    hash_password,
    verify_password,
)
from home_services_api.app.schemas.user import (
    Address,
    AuthResponse,
    MonthlyCounts,
    ProviderList,
    ProviderRead,
    SkillAssignment,
    UserCreate,
    UserList,
    UserLogin,
    UserRead,
    UserSkillRead,
    UserSkillsRead,
    UserUpdate,
)
from home_services_api.app.services.statistics_service import (
    MONTH_LABELS,
    monthly_buckets,
    one_year_before,
    resolve_now,
)

logger = logging.getLogger(__name__)

PAGE_SIZE = 10

_ADDRESS_FIELDS = ("street", "city", "state", "pincode")


def _row_to_user(row: sqlite3.Row) -> UserRead:
    address = None
    if any(row[field] for field in _ADDRESS_FIELDS):
        address = Address(**{field: row[field] for field in _ADDRESS_FIELDS})
    return UserRead(
        id=row["id"],
        name=row["name"],
        mobile_number=row["mobile_number"],
        email=row["email"],
        role=row["role"],
        is_active=bool(row["is_active"]),
        is_verified=bool(row["is_verified"]),
        bio=row["bio"],
        address=address,
        rating_average=row["rating_average"],
        rating_count=row["rating_count"],
        created_at=row["created_at"],
    )


def _fetch_user_skills(cursor: sqlite3.Cursor, user_id: int) -> List[UserSkillRead]:
    rows = cursor.execute(
        """
        SELECT us.skill_id, us.experience, us.hourly_rate, us.is_primary,
               sk.name, sk.category, sk.description
        FROM user_skills us
        JOIN skills sk ON sk.id = us.skill_id
        WHERE us.user_id = ?
        ORDER BY us.position
        """,
        (user_id,),
    ).fetchall()
    return [
        UserSkillRead(
            skill_id=row["skill_id"],
            name=row["name"],
            category=row["category"],
            description=row["description"],
            experience=row["experience"],
            hourly_rate=row["hourly_rate"],
            is_primary=bool(row["is_primary"]),
        )
        for row in rows
    ]


def normalize_skill_assignments(skills: List[SkillAssignment]) -> List[Dict[str, Any]]:
    """Clamp numbers, enforce a single primary skill and reject repeats.

    Returns plain dicts in input order.  The first entry is promoted to
    primary when none is flagged.
    """
    if not skills:
        raise InvalidArgumentError("Skills must be a non-empty list")
    seen = set()
    normalized = []
    for skill in skills:
        if skill.skill_id in seen:
            raise InvalidArgumentError(f"Skill {skill.skill_id} is listed more than once")
        seen.add(skill.skill_id)
        normalized.append(
            {
                "skill_id": skill.skill_id,
                "experience": max(0.0, skill.experience or 0),
                "hourly_rate": max(0.0, skill.hourly_rate or 0),
                "is_primary": bool(skill.is_primary),
            }
        )
    primaries = sum(1 for skill in normalized if skill["is_primary"])
    if primaries > 1:
        raise InvalidArgumentError("Only one skill can be marked as primary")
    if primaries == 0:
        normalized[0]["is_primary"] = True
    return normalized


class UserService:
    """Service for user accounts and provider profiles."""

    @classmethod
    async def register(cls, data: UserCreate) -> AuthResponse:
        """Create an account and return it with an access token.

        Raises
        ------
        ConflictError
            If the mobile number is already registered.
        ForbiddenError
            If ``admin`` is requested while an administrator exists.
        """
        logger.info("Registering user %s as %s", data.mobile_number, data.role)
        now = utcnow_iso()
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if cursor.execute(
                "SELECT id FROM users WHERE mobile_number = ?", (data.mobile_number,)
            ).fetchone():
                raise ConflictError("User with this mobile number already exists")
            if data.role == ROLE_ADMIN:
                admins = cursor.execute(
                    "SELECT COUNT(*) FROM users WHERE role = ?", (ROLE_ADMIN,)
                ).fetchone()[0]
                if admins:
                    raise ForbiddenError("Administrator accounts can only be created by an administrator")
            cursor.execute(
                "INSERT INTO users (name, mobile_number, email, password, role, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (data.name, data.mobile_number, data.email, hash_password(data.password), data.role, now, now),
            )
            user_id = cursor.lastrowid
            conn.commit()
            row = cursor.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise ConflictError("User with this mobile number already exists") from exc
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        return AuthResponse(user=_row_to_user(row), access_token=create_access_token(user_id))

    @classmethod
    async def login(cls, data: UserLogin) -> AuthResponse:
        """Authenticate by email or mobile number."""
        conn = get_connection()
        try:
            row = conn.execute(
                "SELECT * FROM users WHERE mobile_number = ? OR email = ? ORDER BY id LIMIT 1",
                (data.identifier, data.identifier),
            ).fetchone()
        finally:
            conn.close()
        if not row or not verify_password(data.password, row["password"]):
            raise UnauthorizedError("Invalid credentials")
        if not row["is_active"]:
            raise UnauthorizedError("Account is deactivated")
        logger.info("User %s logged in", row["id"])
        return AuthResponse(user=_row_to_user(row), access_token=create_access_token(row["id"]))

    @classmethod
    async def list_users(cls, keyword: Optional[str] = None, role: Optional[str] = None, page: int = 1) -> UserList:
        if page < 1:
            raise InvalidArgumentError("Page must be 1 or greater")
        clauses = []
        params: List[Any] = []
        if keyword:
            clauses.append("(name LIKE ? OR email LIKE ? OR mobile_number LIKE ?)")
            pattern = f"%{keyword}%"
            params.extend([pattern, pattern, pattern])
        if role:
            clauses.append("role = ?")
            params.append(role)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        conn = get_connection()
        try:
            cursor = conn.cursor()
            total = cursor.execute(f"SELECT COUNT(*) FROM users {where}", params).fetchone()[0]
            rows = cursor.execute(
                f"SELECT * FROM users {where} ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
                (*params, PAGE_SIZE, PAGE_SIZE * (page - 1)),
            ).fetchall()
        finally:
            conn.close()
        return UserList(
            users=[_row_to_user(row) for row in rows],
            page=page,
            pages=math.ceil(total / PAGE_SIZE),
            total=total,
        )

    @classmethod
    async def get_user(cls, user_id: int) -> UserRead:
        conn = get_connection()
        try:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        finally:
            conn.close()
        if not row:
            raise NotFoundError("User not found")
        return _row_to_user(row)

    @classmethod
    async def update_user(cls, user_id: int, data: UserUpdate) -> UserRead:
        """Apply the provided fields; the mobile number must stay unique."""
        fields = data.model_dump(exclude_unset=True)
        address = fields.pop("address", None)
        updates: Dict[str, Any] = {key: value for key, value in fields.items() if value is not None}
        if address:
            updates.update({key: value for key, value in address.items() if value is not None})
        for flag in ("is_active", "is_verified"):
            if flag in updates:
                updates[flag] = 1 if updates[flag] else 0

        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM users WHERE id = ?", (user_id,)).fetchone():
                raise NotFoundError("User not found")
            if "mobile_number" in updates and cursor.execute(
                "SELECT id FROM users WHERE mobile_number = ? AND id != ?",
                (updates["mobile_number"], user_id),
            ).fetchone():
                raise ConflictError("User with this mobile number already exists")
            if updates:
                updates["updated_at"] = utcnow_iso()
                assignments = ", ".join(f"{column} = ?" for column in updates)
                cursor.execute(f"UPDATE users SET {assignments} WHERE id = ?", (*updates.values(), user_id))
                conn.commit()
            row = cursor.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        logger.info("User %s updated (%s)", user_id, ", ".join(sorted(updates)) or "no changes")
        return _row_to_user(row)

    @classmethod
    async def delete_user(cls, user_id: int) -> None:
        """Delete a non-admin user that has no bookings or services."""
        conn = get_connection()
        try:
            cursor = conn.cursor()
            row = cursor.execute("SELECT role FROM users WHERE id = ?", (user_id,)).fetchone()
            if not row:
                raise NotFoundError("User not found")
            if row["role"] == ROLE_ADMIN:
                raise InvalidArgumentError("Cannot delete admin user")
            references = cursor.execute(
                """
                SELECT (SELECT COUNT(*) FROM bookings WHERE customer_id = :id OR assigned_provider_id = :id)
                     + (SELECT COUNT(*) FROM services WHERE provider_id = :id)
                """,
                {"id": user_id},
            ).fetchone()[0]
            if references:
                raise InvalidArgumentError("User has bookings or services; deactivate the account instead")
            cursor.execute("DELETE FROM users WHERE id = ?", (user_id,))
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        logger.info("User %s deleted", user_id)

    @classmethod
    async def user_stats(cls, now: Optional[datetime] = None) -> MonthlyCounts:
        """Registrations over the trailing year, one bucket per calendar month."""
        now = resolve_now(now)
        since = one_year_before(now)
        conn = get_connection()
        try:
            rows = conn.execute("SELECT created_at FROM users").fetchall()
        finally:
            conn.close()
        moments = [parse_timestamp(row["created_at"]) for row in rows]
        buckets = monthly_buckets((moment, 1) for moment in moments if since <= moment <= now)
        return MonthlyCounts(labels=list(MONTH_LABELS), data=[int(count) for count in buckets])

    @classmethod
    async def update_user_skills(cls, user_id: int, skills: List[SkillAssignment]) -> UserSkillsRead:
        """Replace a provider's skill list.

        Raises
        ------
        NotFoundError
            If the user does not exist.
        ForbiddenError
            If the user is not a service provider.
        InvalidArgumentError
            For an empty list, unknown or inactive skills, repeated skills
            or more than one primary skill.
        """
        normalized = normalize_skill_assignments(skills)
        conn = get_connection()
        try:
            cursor = conn.cursor()
            user = cursor.execute("SELECT role FROM users WHERE id = ?", (user_id,)).fetchone()
            if not user:
                raise NotFoundError("User not found")
            if user["role"] != ROLE_PROVIDER:
                raise ForbiddenError("Only service providers can have skills")
            ids = [skill["skill_id"] for skill in normalized]
            placeholders = ",".join("?" for _ in ids)
            found = cursor.execute(
                f"SELECT COUNT(*) FROM skills WHERE is_active = 1 AND id IN ({placeholders})", ids
            ).fetchone()[0]
            if found != len(ids):
                raise InvalidArgumentError("One or more skills are invalid or inactive")
            cursor.execute("DELETE FROM user_skills WHERE user_id = ?", (user_id,))
            cursor.executemany(
                "INSERT INTO user_skills (user_id, skill_id, position, experience, hourly_rate, is_primary) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                [
                    (
                        user_id,
                        skill["skill_id"],
                        position,
                        skill["experience"],
                        skill["hourly_rate"],
                        1 if skill["is_primary"] else 0,
                    )
                    for position, skill in enumerate(normalized)
                ],
            )
            cursor.execute("UPDATE users SET updated_at = ? WHERE id = ?", (utcnow_iso(), user_id))
            conn.commit()
            result = _fetch_user_skills(cursor, user_id)
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        logger.info("Provider %s now lists %d skills", user_id, len(result))
        return UserSkillsRead(user_id=user_id, skills=result)

    @classmethod
    async def get_user_skills(cls, user_id: int) -> UserSkillsRead:
        conn = get_connection()
        try:
            cursor = conn.cursor()
            if not cursor.execute("SELECT id FROM users WHERE id = ?", (user_id,)).fetchone():
                raise NotFoundError("User not found")
            return UserSkillsRead(user_id=user_id, skills=_fetch_user_skills(cursor, user_id))
        finally:
            conn.close()

    @classmethod
    async def list_service_providers(
        cls,
        skill_id: Optional[int] = None,
        min_rating: Optional[float] = None,
        page: int = 1,
        limit: int = 10,
    ) -> ProviderList:
        """Active, verified providers, best rated first."""
        if page < 1 or limit < 1:
            raise InvalidArgumentError("Page and limit must be 1 or greater")
        clauses = ["u.role = ?", "u.is_active = 1", "u.is_verified = 1"]
        params: List[Any] = [ROLE_PROVIDER]
        if skill_id is not None:
            clauses.append("EXISTS (SELECT 1 FROM user_skills us WHERE us.user_id = u.id AND us.skill_id = ?)")
            params.append(skill_id)
        if min_rating is not None:
            clauses.append("u.rating_average >= ?")
            params.append(min_rating)
        where = " AND ".join(clauses)
        conn = get_connection()
        try:
            cursor = conn.cursor()
            total = cursor.execute(f"SELECT COUNT(*) FROM users u WHERE {where}", params).fetchone()[0]
            rows = cursor.execute(
                f"SELECT u.* FROM users u WHERE {where} "
                "ORDER BY u.rating_average DESC, u.rating_count DESC, u.id LIMIT ? OFFSET ?",
                (*params, limit, limit * (page - 1)),
            ).fetchall()
            providers = [
                ProviderRead(**_row_to_user(row).model_dump(), skills=_fetch_user_skills(cursor, row["id"]))
                for row in rows
            ]
        finally:
            conn.close()
        return ProviderList(
            providers=providers,
            total_pages=math.ceil(total / limit),
            current_page=page,
            total_providers=total,
        )

"""
Account provisioning: auth user -> profile -> (student row), with compensation.

Each step is a separate call to the school repo. When a later step fails the
earlier ones are undone in reverse order, so a failed request never leaves an
auth account without a profile (or a student profile without its row).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
import logging
import re
import secrets
import uuid

from ekhlas.identity_access.domain import ALLOWED_ROLES

from .repo import RepoError

logger = logging.getLogger("ekhlas.schools")

GENERATED_EMAIL_DOMAIN = "students.ekhlas.local"
# No 0/O/1/l/I to keep handed-out passwords readable.
PASSWORD_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz23456789!@#$"

STUDENT_DETAIL_FIELDS: tuple[str, ...] = (
    "first_name",
    "last_name",
    "gender",
    "date_of_birth",
    "nationality",
    "national_id",
    "address",
    "city",
    "governorate",
    "postal_code",
    "previous_school",
    "enrollment_date",
    "notes",
    "emergency_contact_name",
    "emergency_contact_phone",
)


def random_password(length: int = 10) -> str:
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def generated_student_email(student_code: Optional[str]) -> str:
    """`student.<code>@students.ekhlas.local`; a random 8-char tag when no code."""
    tag = re.sub(r"\s+", "", student_code or "") or uuid.uuid4().hex[:8]
    return f"student.{tag}@{GENERATED_EMAIL_DOMAIN}"


def clean(value: Any) -> Optional[str]:
    """Stripped string or None for blank input."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class StudentAccount:
    user_id: str
    full_name: str
    class_id: str
    student_code: Optional[str]
    login_email: str
    temp_password: str
    email_is_generated: bool

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.user_id,
            "full_name": self.full_name,
            "class_id": self.class_id,
            "student_code": self.student_code,
            "login_email": self.login_email,
            "temp_password": self.temp_password,
            "email_is_generated": self.email_is_generated,
        }


def _undo(what: str, func, user_id: str) -> None:
    try:
        func(user_id)
    except RepoError as exc:
        logger.warning("Compensation (%s) failed for %s: %s", what, user_id, exc.message)


def provision_user(
    repo,
    *,
    email: str,
    password: str,
    full_name: str,
    role: str,
    school_id: Optional[str],
    phone: Optional[str] = None,
) -> Dict[str, Any]:
    """Create auth user + profile. Platform admins never carry a school."""
    if role not in ALLOWED_ROLES:
        raise RepoError("Invalid role")
    school = None if role == "platform_admin" else school_id
    user_id = repo.create_auth_user(email=email, password=password)
    try:
        repo.insert_profile(
            {
                "id": user_id,
                "school_id": school,
                "role": role,
                "full_name": full_name,
                "phone": phone or None,
                "is_active": True,
            }
        )
    except RepoError:
        _undo("delete auth user", repo.delete_auth_user, user_id)
        raise
    logger.info("Provisioned %s account %s", role, user_id)
    return {"id": user_id, "email": email, "role": role, "school_id": school, "full_name": full_name}


def provision_student(
    repo,
    *,
    school_id: str,
    class_id: str,
    full_name: str,
    student_code: Optional[str] = None,
    email: Optional[str] = None,
    password: Optional[str] = None,
    phone: Optional[str] = None,
    status: Optional[str] = None,
    details: Optional[Mapping[str, Any]] = None,
) -> StudentAccount:
    """Create auth user -> student profile -> `students` row for one tenant."""
    login_email = email or generated_student_email(student_code)
    login_password = password or random_password(10)

    user_id = repo.create_auth_user(email=login_email, password=login_password)
    try:
        repo.insert_profile(
            {
                "id": user_id,
                "school_id": school_id,
                "role": "student",
                "full_name": full_name,
                "phone": phone,
                "is_active": True,
            }
        )
    except RepoError:
        _undo("delete auth user", repo.delete_auth_user, user_id)
        raise

    row: Dict[str, Any] = {
        "student_id": user_id,
        "school_id": school_id,
        "class_id": class_id,
        "student_code": student_code,
        "status": status or "active",
    }
    for field in STUDENT_DETAIL_FIELDS:
        row[field] = clean((details or {}).get(field))
    try:
        repo.insert_student(row)
    except RepoError:
        _undo("delete profile", repo.delete_profile, user_id)
        _undo("delete auth user", repo.delete_auth_user, user_id)
        raise

    logger.info("Provisioned student %s in school %s", user_id, school_id)
    return StudentAccount(
        user_id=user_id,
        full_name=full_name,
        class_id=class_id,
        student_code=student_code,
        login_email=login_email,
        temp_password=login_password,
        email_is_generated=not email,
    )


def class_listing(grades, classes) -> list[Dict[str, str]]:
    """Rows for the template's `classes` sheet: class id, class name, grade name."""
    grade_names = {g["id"]: g.get("name") or "" for g in grades}
    return [
        {"class_id": c["id"], "class_name": c.get("name") or "", "grade_name": grade_names.get(c.get("grade_id"), "")}
        for c in classes
    ]


def class_lookup(grades, classes) -> Dict[tuple[str, str], str]:
    """(grade name, class name) -> class id, names stripped."""
    return {
        ((row["grade_name"] or "").strip(), (row["class_name"] or "").strip()): row["class_id"]
        for row in class_listing(grades, classes)
    }


__all__ = [
    "class_listing",
    "class_lookup",
    "GENERATED_EMAIL_DOMAIN",
    "PASSWORD_ALPHABET",
    "STUDENT_DETAIL_FIELDS",
    "random_password",
    "generated_student_email",
    "clean",
    "StudentAccount",
    "provision_user",
    "provision_student",
]

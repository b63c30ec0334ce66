"""
School data gateway: schools, profiles, students, grades, classes and the
auth-admin operations needed to provision accounts.

Two implementations share one duck-typed surface:
- `SupabaseSchoolRepo` talks to PostgREST and GoTrue admin with a
  service-role supabase client (bypasses RLS; callers must authorize first).
- `InMemorySchoolRepo` keeps everything in process memory for local
  development and tests, backed by the in-memory identity store so accounts
  created through the APIs can sign in.

All failures surface as `RepoError` carrying a short, user-presentable message.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional
import threading
import uuid
from datetime import datetime, timezone

from ekhlas.identity_access.domain import Profile, normalize_role
from ekhlas.identity_access.stores import InMemoryIdentityStore


SCHOOL_COLUMNS = "id,name,code,address,phone,created_at"


class RepoError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def _error_message(exc: BaseException) -> str:
    return str(getattr(exc, "message", None) or exc or exc.__class__.__name__)


class SupabaseSchoolRepo:
    def __init__(self, client: Any):
        self._client = client

    def _rows(self, query) -> List[Dict[str, Any]]:
        try:
            res = query.execute()
        except Exception as exc:
            raise RepoError(_error_message(exc)) from exc
        data = getattr(res, "data", None)
        if isinstance(data, dict):
            return [data]
        return list(data or [])

    # --- Schools ------------------------------------------------------------------

    def list_schools(self) -> List[Dict[str, Any]]:
        return self._rows(self._client.table("schools").select(SCHOOL_COLUMNS).order("created_at"))

    def create_school(self, *, name: str, code: Optional[str], address: Optional[str], phone: Optional[str]) -> Dict[str, Any]:
        rows = self._rows(
            self._client.table("schools").insert([{"name": name, "code": code, "address": address, "phone": phone}])
        )
        if not rows:
            raise RepoError("School was not created")
        return rows[0]

    # --- Auth admin ---------------------------------------------------------------

    def create_auth_user(self, *, email: str, password: str) -> str:
        try:
            res = self._client.auth.admin.create_user({"email": email, "password": password, "email_confirm": True})
        except Exception as exc:
            raise RepoError(_error_message(exc)) from exc
        user = getattr(res, "user", None)
        if user is None or not getattr(user, "id", None):
            raise RepoError("Failed to create auth user")
        return str(user.id)

    def update_auth_user(self, user_id: str, *, email: Optional[str] = None, password: Optional[str] = None) -> None:
        attrs: Dict[str, str] = {}
        if email:
            attrs["email"] = email
        if password:
            attrs["password"] = password
        if not attrs:
            return
        try:
            self._client.auth.admin.update_user_by_id(user_id, attrs)
        except Exception as exc:
            raise RepoError(_error_message(exc)) from exc

    def delete_auth_user(self, user_id: str) -> None:
        try:
            self._client.auth.admin.delete_user(user_id)
        except Exception as exc:
            raise RepoError(_error_message(exc)) from exc

    # --- Profiles -----------------------------------------------------------------

    def list_profiles(self) -> List[Dict[str, Any]]:
        return self._rows(
            self._client.table("profiles").select("id,full_name,role,school_id,phone,is_active").order("full_name")
        )

    def insert_profile(self, row: Dict[str, Any]) -> None:
        self._rows(self._client.table("profiles").insert([row]))

    def update_profile(self, user_id: str, changes: Dict[str, Any]) -> None:
        if not changes:
            return
        self._rows(self._client.table("profiles").update(changes).eq("id", user_id))

    def delete_profile(self, user_id: str) -> None:
        self._rows(self._client.table("profiles").delete().eq("id", user_id))

    # --- Students, grades, classes ------------------------------------------------

    def insert_student(self, row: Dict[str, Any]) -> None:
        self._rows(self._client.table("students").insert([row]))

    def list_students(self, school_id: str) -> List[Dict[str, Any]]:
        return self._rows(
            self._client.table("students")
            .select("student_id,student_code,first_name,last_name,class_id,status")
            .eq("school_id", school_id)
        )

    def list_grades(self, school_id: str) -> List[Dict[str, Any]]:
        return self._rows(
            self._client.table("grades").select("id,name,sort_order").eq("school_id", school_id).order("sort_order")
        )

    def list_classes(self, school_id: str) -> List[Dict[str, Any]]:
        return self._rows(
            self._client.table("classes")
            .select("id,name,grade_id,sort_order")
            .eq("school_id", school_id)
            .order("sort_order")
        )

    def create_grade(self, school_id: str, *, name: str, sort_order: int = 0) -> Dict[str, Any]:
        rows = self._rows(
            self._client.table("grades").insert([{"school_id": school_id, "name": name, "sort_order": sort_order}])
        )
        if not rows:
            raise RepoError("Grade was not created")
        return rows[0]

    def create_class(self, school_id: str, *, grade_id: str, name: str, sort_order: int = 0) -> Dict[str, Any]:
        row = {"school_id": school_id, "grade_id": grade_id, "name": name, "sort_order": sort_order}
        rows = self._rows(self._client.table("classes").insert([row]))
        if not rows:
            raise RepoError("Class was not created")
        return rows[0]


class InMemorySchoolRepo:
    def __init__(self, store: InMemoryIdentityStore):
        self.store = store
        self._lock = threading.Lock()
        self._schools: Dict[str, Dict[str, Any]] = {}
        self._students: Dict[str, Dict[str, Any]] = {}
        self._grades: Dict[str, Dict[str, Any]] = {}
        self._classes: Dict[str, Dict[str, Any]] = {}
        self._phones: Dict[str, Optional[str]] = {}

    # --- Schools ------------------------------------------------------------------

    def list_schools(self) -> List[Dict[str, Any]]:
        return sorted(self._schools.values(), key=lambda s: s["created_at"])

    def create_school(self, *, name: str, code: Optional[str], address: Optional[str], phone: Optional[str]) -> Dict[str, Any]:
        with self._lock:
            if code and any(s.get("code") == code for s in self._schools.values()):
                raise RepoError('duplicate key value violates unique constraint "schools_code_key"')
            school_id = str(uuid.uuid4())
            row = {
                "id": school_id,
                "name": name,
                "code": code,
                "address": address,
                "phone": phone,
                "created_at": datetime.now(timezone.utc).isoformat(),
            }
            self._schools[school_id] = row
        return dict(row)

    # --- Auth admin ---------------------------------------------------------------

    def create_auth_user(self, *, email: str, password: str) -> str:
        try:
            return self.store.create_user(email=email, password=password, email_confirm=True)
        except ValueError as exc:
            raise RepoError(str(exc)) from exc

    def update_auth_user(self, user_id: str, *, email: Optional[str] = None, password: Optional[str] = None) -> None:
        try:
            self.store.update_user(user_id, email=email, password=password)
        except ValueError as exc:
            raise RepoError(str(exc)) from exc

    def delete_auth_user(self, user_id: str) -> None:
        try:
            self.store.delete_user(user_id)
        except ValueError as exc:
            raise RepoError(str(exc)) from exc

    # --- Profiles -----------------------------------------------------------------

    def list_profiles(self) -> List[Dict[str, Any]]:
        rows = [
            {
                "id": p.user_id,
                "full_name": p.full_name,
                "role": p.role,
                "school_id": p.tenant_id,
                "phone": self._phones.get(p.user_id),
                "is_active": p.is_active,
            }
            for p in self.store.list_profiles()
        ]
        return sorted(rows, key=lambda r: r["full_name"])

    def insert_profile(self, row: Dict[str, Any]) -> None:
        user_id = str(row.get("id") or "")
        if not user_id:
            raise RepoError("profile id is required")
        if self.store.get_profile(user_id) is not None:
            raise RepoError('duplicate key value violates unique constraint "profiles_pkey"')
        role = normalize_role(row.get("role"))
        if role is None:
            raise RepoError("invalid input value for enum user_role")
        school_id = row.get("school_id")
        if school_id and school_id not in self._schools:
            raise RepoError('insert or update on table "profiles" violates foreign key constraint "profiles_school_id_fkey"')
        self.store.put_profile(
            Profile(
                user_id=user_id,
                role=role,
                tenant_id=school_id or None,
                full_name=str(row.get("full_name") or ""),
                is_active=bool(row.get("is_active", True)),
            )
        )
        self._phones[user_id] = row.get("phone")

    def update_profile(self, user_id: str, changes: Dict[str, Any]) -> None:
        mapped: Dict[str, Any] = {}
        for key, value in changes.items():
            if key == "role":
                role = normalize_role(value)
                if role is None:
                    raise RepoError("invalid input value for enum user_role")
                mapped["role"] = role
            elif key == "school_id":
                mapped["tenant_id"] = value or None
            elif key == "full_name":
                mapped["full_name"] = str(value or "")
            elif key == "is_active":
                mapped["is_active"] = bool(value)
            elif key == "phone":
                self._phones[user_id] = value
        if self.store.get_profile(user_id) is None:
            # PostgREST updates with no matching row succeed silently.
            return
        if mapped:
            self.store.update_profile(user_id, **mapped)

    def delete_profile(self, user_id: str) -> None:
        self.store.delete_profile(user_id)
        self._phones.pop(user_id, None)

    # --- Students, grades, classes ------------------------------------------------

    def insert_student(self, row: Dict[str, Any]) -> None:
        class_id = row.get("class_id")
        if class_id not in self._classes:
            raise RepoError('insert or update on table "students" violates foreign key constraint "students_class_id_fkey"')
        with self._lock:
            code = row.get("student_code")
            school_id = row.get("school_id")
            if code and any(
                s.get("student_code") == code and s.get("school_id") == school_id for s in self._students.values()
            ):
                raise RepoError('duplicate key value violates unique constraint "students_school_code_key"')
            self._students[str(row["student_id"])] = dict(row)

    def list_students(self, school_id: str) -> List[Dict[str, Any]]:
        return [dict(s) for s in self._students.values() if s.get("school_id") == school_id]

    def list_grades(self, school_id: str) -> List[Dict[str, Any]]:
        rows = [g for g in self._grades.values() if g["school_id"] == school_id]
        return [{k: g[k] for k in ("id", "name", "sort_order")} for g in sorted(rows, key=lambda g: g["sort_order"])]

    def list_classes(self, school_id: str) -> List[Dict[str, Any]]:
        rows = [c for c in self._classes.values() if c["school_id"] == school_id]
        return [
            {k: c[k] for k in ("id", "name", "grade_id", "sort_order")}
            for c in sorted(rows, key=lambda c: c["sort_order"])
        ]

    def create_grade(self, school_id: str, *, name: str, sort_order: int = 0) -> Dict[str, Any]:
        if school_id not in self._schools:
            raise RepoError('insert or update on table "grades" violates foreign key constraint "grades_school_id_fkey"')
        grade_id = str(uuid.uuid4())
        row = {"id": grade_id, "school_id": school_id, "name": name, "sort_order": sort_order}
        with self._lock:
            self._grades[grade_id] = row
        return dict(row)

    def create_class(self, school_id: str, *, grade_id: str, name: str, sort_order: int = 0) -> Dict[str, Any]:
        if grade_id not in self._grades:
            raise RepoError('insert or update on table "classes" violates foreign key constraint "classes_grade_id_fkey"')
        class_id = str(uuid.uuid4())
        row = {"id": class_id, "school_id": school_id, "grade_id": grade_id, "name": name, "sort_order": sort_order}
        with self._lock:
            self._classes[class_id] = row
        return dict(row)


__all__ = ["RepoError", "SupabaseSchoolRepo", "InMemorySchoolRepo"]

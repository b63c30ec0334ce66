"""
SupabaseSchoolRepo over a fake supabase client: query shape and error mapping.
"""
from __future__ import annotations

import pytest

from ekhlas.schools.repo import RepoError, SupabaseSchoolRepo
from ekhlas.tests.utils.fake_supabase import FakeApiError, FakeSupabase


def test_create_school_returns_inserted_row():
    client = FakeSupabase()
    repo = SupabaseSchoolRepo(client)
    school = repo.create_school(name="مدرسة النور", code="NOOR", address=None, phone=None)
    assert school["name"] == "مدرسة النور"
    assert school["id"]
    assert client.tables["schools"][0]["code"] == "NOOR"


def test_postgrest_errors_become_repo_errors():
    client = FakeSupabase()
    client.errors["schools"] = FakeApiError('duplicate key value violates unique constraint "schools_code_key"')
    with pytest.raises(RepoError) as info:
        SupabaseSchoolRepo(client).create_school(name="x", code="DUP", address=None, phone=None)
    assert "schools_code_key" in info.value.message


def test_lists_are_scoped_to_school():
    client = FakeSupabase()
    client.tables["grades"] = [{"id": "g-1", "name": "أول", "school_id": "s-1"}, {"id": "g-2", "name": "ثاني", "school_id": "s-2"}]
    client.tables["students"] = [{"student_id": "a", "school_id": "s-1"}, {"student_id": "b", "school_id": "s-2"}]
    repo = SupabaseSchoolRepo(client)
    assert [g["id"] for g in repo.list_grades("s-1")] == ["g-1"]
    assert [s["student_id"] for s in repo.list_students("s-2")] == ["b"]


def test_create_grade_and_class_insert_tenant_rows():
    client = FakeSupabase()
    repo = SupabaseSchoolRepo(client)
    grade = repo.create_grade("s-1", name="أول ابتدائي", sort_order=1)
    klass = repo.create_class("s-1", grade_id=grade["id"], name="1A")
    assert client.tables["grades"] == [{"id": grade["id"], "school_id": "s-1", "name": "أول ابتدائي", "sort_order": 1}]
    assert client.tables["classes"][0]["grade_id"] == grade["id"]
    assert klass["school_id"] == "s-1" and klass["sort_order"] == 0


def test_update_and_delete_profile_filter_by_id():
    client = FakeSupabase()
    client.tables["profiles"] = [{"id": "u-1", "role": "teacher"}, {"id": "u-2", "role": "hr"}]
    repo = SupabaseSchoolRepo(client)
    repo.update_profile("u-1", {"role": "hod"})
    repo.update_profile("u-2", {})
    repo.delete_profile("u-2")
    assert client.tables["profiles"] == [{"id": "u-1", "role": "hod"}]
    # Empty change set issues no query
    assert len(client.queries) == 2


def test_create_auth_user_confirms_email():
    client = FakeSupabase()
    user_id = SupabaseSchoolRepo(client).create_auth_user(email="a@b.com", password="secret123")
    assert user_id == "new-user-id"
    assert client.calls == [("create_user", {"email": "a@b.com", "password": "secret123", "email_confirm": True})]


def test_update_auth_user_sends_only_given_fields():
    client = FakeSupabase()
    repo = SupabaseSchoolRepo(client)
    repo.update_auth_user("u-1", email="new@b.com")
    repo.update_auth_user("u-1")
    assert client.calls == [("update_user_by_id", "u-1", {"email": "new@b.com"})]


@pytest.mark.parametrize("call", ["create", "update", "delete"])
def test_auth_admin_errors_become_repo_errors(call: str):
    client = FakeSupabase()
    client.admin_error = FakeApiError("A user with this email address has already been registered", status=422)
    repo = SupabaseSchoolRepo(client)
    with pytest.raises(RepoError, match="already been registered"):
        if call == "create":
            repo.create_auth_user(email="a@b.com", password="secret123")
        elif call == "update":
            repo.update_auth_user("u-1", password="another1")
        else:
            repo.delete_auth_user("u-1")

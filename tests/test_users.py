"""
Tests for the user directory service.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from campusdash.core.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)


@pytest.mark.asyncio
async def test_create_stores_hash_and_lowercase_email(directory):
    user = await directory.create(name="Ada", email="Ada@X.com", password="password123")
    assert user.id is not None
    assert user.email == "ada@x.com"
    assert user.role == "student"
    assert user.hashed_password != "password123"
    assert user.hashed_password.startswith("$2")
    assert user.is_active is True


@pytest.mark.asyncio
async def test_public_view_hides_password(directory):
    user = await directory.create(name="Ada", email="ada@x.com", password="password123")
    view = directory.public_view(user)
    dumped = view.model_dump(by_alias=True)
    assert "hashedPassword" not in dumped
    assert "password" not in dumped
    assert dumped["email"] == "ada@x.com"
    assert dumped["isActive"] is True
    assert "joinDate" in dumped and "lastActive" in dumped


@pytest.mark.asyncio
async def test_duplicate_email_in_any_case_conflicts(directory):
    await directory.create(name="Ada", email="ada@x.com", password="password123")
    with pytest.raises(ConflictError):
        await directory.create(name="Other", email="ADA@x.com", password="password123")


@pytest.mark.asyncio
async def test_validation_reports_every_bad_field(directory):
    with pytest.raises(ValidationError) as exc:
        await directory.create(name="", email="not-an-email", password="short", role="janitor")
    assert set(exc.value.fields) == {"name", "email", "password", "role"}


@pytest.mark.asyncio
async def test_name_length_limit(directory):
    with pytest.raises(ValidationError) as exc:
        await directory.create(name="x" * 51, email="long@x.com", password="password123")
    assert "name" in exc.value.fields


@pytest.mark.asyncio
async def test_email_validator_resists_pathological_input(directory):
    # would backtrack catastrophically with a nested-quantifier pattern
    evil = "a" * 150 + "@" + "a" * 150 + "!"
    with pytest.raises(ValidationError):
        await directory.create(name="Eve", email=evil, password="password123")


@pytest.mark.asyncio
async def test_find_by_email_is_case_insensitive(directory):
    user = await directory.create(name="Ada", email="ada@x.com", password="password123")
    found = await directory.find_by_email("  ADA@X.COM ")
    assert found is not None and found.id == user.id
    assert await directory.find_by_email("nobody@x.com") is None


@pytest.mark.asyncio
async def test_update_profile_fields(directory):
    user = await directory.create(name="Ada", email="ada@x.com", password="password123")
    updated = await directory.update(user.id, {"name": "Ada L.", "bio": "Mathematician"})
    assert updated.name == "Ada L."
    assert updated.bio == "Mathematician"
    assert updated.email == "ada@x.com"


@pytest.mark.asyncio
async def test_update_rejects_unknown_fields(directory):
    user = await directory.create(name="Ada", email="ada@x.com", password="password123")
    with pytest.raises(ValidationError) as exc:
        await directory.update(user.id, {"hashed_password": "x"})
    assert "hashed_password" in exc.value.fields


@pytest.mark.asyncio
async def test_update_missing_user(directory):
    with pytest.raises(NotFoundError):
        await directory.update(999, {"name": "Ghost"})


@pytest.mark.asyncio
async def test_update_email_conflict(directory):
    await directory.create(name="Ada", email="ada@x.com", password="password123")
    bob = await directory.create(name="Bob", email="bob@x.com", password="password123")
    with pytest.raises(ConflictError):
        await directory.update(bob.id, {"email": "ADA@x.com"})


@pytest.mark.asyncio
async def test_update_own_email_to_same_value_is_fine(directory):
    ada = await directory.create(name="Ada", email="ada@x.com", password="password123")
    updated = await directory.update(ada.id, {"email": "ADA@X.COM"})
    assert updated.email == "ada@x.com"


@pytest.mark.asyncio
async def test_update_password_rehashes_and_stamps(directory, credentials):
    user = await directory.create(name="Ada", email="ada@x.com", password="password123")
    old_hash = user.hashed_password
    assert user.password_changed_at is None

    updated = await directory.update(user.id, {"password": "brand-new-pass"})
    assert updated.hashed_password != old_hash
    assert credentials.verify("brand-new-pass", updated.hashed_password)
    assert updated.password_changed_at is not None


@pytest.mark.asyncio
async def test_change_password_checks_current(directory):
    user = await directory.create(name="Ada", email="ada@x.com", password="password123")
    with pytest.raises(ValidationError) as exc:
        await directory.change_password(user.id, "wrong-password", "brand-new-pass")
    assert "currentPassword" in exc.value.fields

    with pytest.raises(ValidationError) as exc:
        await directory.change_password(user.id, "password123", "password123")
    assert "newPassword" in exc.value.fields

    changed = await directory.change_password(user.id, "password123", "brand-new-pass")
    assert (await directory.login("ada@x.com", "brand-new-pass")).id == changed.id


@pytest.mark.asyncio
async def test_login(directory):
    user = await directory.create(name="Ada", email="ada@x.com", password="password123")
    logged_in = await directory.login("ada@x.com", "password123")
    assert logged_in.id == user.id

    with pytest.raises(AuthenticationError, match="Invalid email or password"):
        await directory.login("ada@x.com", "password124")
    with pytest.raises(AuthenticationError, match="Invalid email or password"):
        await directory.login("nobody@x.com", "password123")


@pytest.mark.asyncio
async def test_login_deactivated(directory):
    user = await directory.create(name="Ada", email="ada@x.com", password="password123")
    await directory.update(user.id, {"is_active": False})
    with pytest.raises(AuthenticationError, match="deactivated"):
        await directory.login("ada@x.com", "password123")


@pytest.mark.asyncio
async def test_touch_last_active_moves_forward(directory, db_session):
    user = await directory.create(name="Ada", email="ada@x.com", password="password123")
    past = datetime.now(timezone.utc) - timedelta(days=3)
    user.last_active = past
    await db_session.commit()

    await directory.touch_last_active(user.id)
    await db_session.refresh(user)
    assert user.last_active.replace(tzinfo=None) > past.replace(tzinfo=None)


@pytest.mark.asyncio
async def test_touch_last_active_swallows_db_errors(directory, db_session, monkeypatch):
    user = await directory.create(name="Ada", email="ada@x.com", password="password123")

    async def _boom(*args, **kwargs):
        raise OperationalError("UPDATE users", {}, Exception("database is locked"))

    monkeypatch.setattr(db_session, "execute", _boom)
    # must not raise
    await directory.touch_last_active(user.id)


@pytest.mark.asyncio
async def test_role_queries_and_counts(directory):
    await directory.create(name="S1", email="s1@x.com", password="password123")
    s2 = await directory.create(name="S2", email="s2@x.com", password="password123")
    await directory.create(name="T1", email="t1@x.com", password="password123", role="teacher")
    await directory.update(s2.id, {"is_active": False})

    students = await directory.find_by_role("student")
    assert [u.email for u in students] == ["s1@x.com"]
    assert len(await directory.list_active()) == 2

    assert await directory.count_by_role() == {"student": 1, "teacher": 1, "admin": 0}
    assert await directory.count_active() == 2
    assert await directory.count_active(role="teacher") == 1

    since = datetime.now(timezone.utc) - timedelta(days=7)
    assert await directory.count_created_since(since) == 3


@pytest.mark.asyncio
async def test_authenticate_returns_none_on_failure(directory):
    user = await directory.create(name="Ada", email="ada@x.com", password="password123")
    assert (await directory.authenticate("ADA@x.com", "password123")).id == user.id
    assert await directory.authenticate("ada@x.com", "wrong-password") is None
    assert await directory.authenticate("nobody@x.com", "password123") is None


def test_validation_error_str_names_fields():
    exc = ValidationError({"name": "Name is required"})
    assert exc.summary == "Validation failed"
    assert str(exc).startswith("Validation failed")
    assert "name: Name is required" in str(exc)
    assert not hasattr(exc, "message")

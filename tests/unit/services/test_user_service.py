from __future__ import annotations

import pytest

from solarcrm.core.exceptions import AuthorizationError, NotFoundError, ValidationError
from solarcrm.models import ActivityLog
from solarcrm.models.enums import UserRole, UserStatus
from solarcrm.services.activity_log_service import ActivityAction
from solarcrm.services.user_service import UserService


def test_create_profile_normalizes_email(db):
    user = UserService(db).create_profile("user-1", "  Meera@Example.COM ", " Meera ", "9876543210")
    assert user.email == "meera@example.com"
    assert user.name == "Meera"
    assert user.role == UserRole.CUSTOMER
    assert UserService(db).get_by_email("MEERA@example.com").id == "user-1"


def test_create_profile_rejects_bad_input(db):
    with pytest.raises(ValidationError):
        UserService(db).create_profile("user-2", "not-an-email", "X")
    with pytest.raises(ValidationError):
        UserService(db).create_profile("user-3", "x@example.com", "X", phone="12")


def test_get_profile_missing_returns_none(db):
    assert UserService(db).get_profile("nobody") is None


def test_list_users_filters(db, users):
    service = UserService(db)
    assert {user.id for user in service.list_users(role="agent")} == {users["agent"].id, users["other_agent"].id}
    assert [user.id for user in service.list_users(status="disabled")] == [users["disabled"].id]


@pytest.mark.parametrize("filters", [{"role": "superuser"}, {"status": "banned"}])
def test_list_users_rejects_unknown_filter_values(db, users, filters):
    with pytest.raises(ValidationError, match="Invalid user filter"):
        UserService(db).list_users(**filters)


def test_update_user_is_admin_only(db, users):
    with pytest.raises(AuthorizationError):
        UserService(db).update_user(users["agent"].id, {"name": "New"}, users["office"])


def test_update_user_changes_role_and_logs(db, users):
    updated = UserService(db).update_user(
        users["other_agent"].id, {"role": "installer", "email": "ignored@example.com"}, users["admin"]
    )
    assert updated.role == UserRole.INSTALLER
    assert updated.email == "bela.agent@example.com"
    entry = db.query(ActivityLog).filter(ActivityLog.action == ActivityAction.USER_UPDATE).one()
    assert entry.old_value == {"role": "agent"}
    assert entry.new_value == {"role": "installer"}


def test_admin_cannot_disable_self(db, users):
    service = UserService(db)
    with pytest.raises(ValidationError, match="own account"):
        service.update_user(users["admin"].id, {"status": "disabled"}, users["admin"])
    assert service.update_user(users["agent"].id, {"status": UserStatus.DISABLED}, users["admin"]).status == UserStatus.DISABLED


def test_update_unknown_user(db, users):
    with pytest.raises(NotFoundError):
        UserService(db).update_user("missing", {"name": "X"}, users["admin"])

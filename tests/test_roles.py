from app.core.roles import UserRole, is_admin, is_elevated, parse_role, resolve_role, role_for_job_title


def test_highest_priority_role_wins():
    assert resolve_role(["member", "admin"]) == UserRole.admin
    assert resolve_role([UserRole.manager, UserRole.super_admin, UserRole.member]) == UserRole.super_admin
    assert resolve_role(["manager", "member"]) == UserRole.manager


def test_order_of_rows_does_not_matter():
    assert resolve_role(["admin", "member"]) == resolve_role(["member", "admin"])


def test_no_rows_or_unknown_rows_resolve_to_member():
    assert resolve_role([]) == UserRole.member
    assert resolve_role(["owner", None]) == UserRole.member


def test_parse_role():
    assert parse_role("admin") == UserRole.admin
    assert parse_role(UserRole.manager) == UserRole.manager
    assert parse_role("root") is None


def test_signup_role_from_job_title():
    assert role_for_job_title("이사") == UserRole.admin
    assert role_for_job_title("본부장") == UserRole.admin
    assert role_for_job_title("과장") == UserRole.manager
    assert role_for_job_title("팀장") == UserRole.manager
    assert role_for_job_title("인턴") == UserRole.member
    assert role_for_job_title("CEO") == UserRole.member
    assert role_for_job_title(None) == UserRole.member


def test_first_user_of_company_is_super_admin():
    assert role_for_job_title("인턴", first_in_company=True) == UserRole.super_admin


def test_elevated_and_admin_sets():
    assert is_elevated(UserRole.manager)
    assert not is_elevated(UserRole.member)
    assert is_admin(UserRole.super_admin)
    assert not is_admin(UserRole.manager)

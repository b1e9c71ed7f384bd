"""Tests for registration, unified login, profile and settings flows."""

from datetime import timedelta

import pytest

from projectflow_api.auth.tokens import decode_access_token
from projectflow_api.auth.tokens import decode_challenge_token
from projectflow_api.workspace.enums import AccountKind
from projectflow_api.workspace.enums import AccountStatus
from projectflow_api.workspace.enums import NotificationType
from projectflow_api.workspace.enums import Role
from projectflow_api.workspace.exceptions import AuthenticationFailed
from projectflow_api.workspace.exceptions import Conflict
from projectflow_api.workspace.exceptions import Forbidden
from projectflow_api.workspace.exceptions import NotFound
from projectflow_api.workspace.exceptions import ValidationFailed
from projectflow_api.workspace.orchestrator import account_flow
from tests.fixtures.workspace_fixtures import PASSWORD


def registration(**overrides):
    data = {
        "first_name": "Olivia",
        "last_name": "Stone",
        "email": "olivia@globex.io",
        "phone_no": "+15550199",
        "company_name": "Globex Corp",
        "company_domain": "globex.io",
        "company_id": "GLX-1",
        "company_address": "5 Harbor Road",
        "founded_year": 2001,
        "password": "secret-123",
        "confirm_password": "secret-123",
    }
    data.update(overrides)
    return data


class TestRegisterOwner:
    @pytest.mark.asyncio
    async def test_registers_inactive_owner_and_sends_welcome(self, store, mock_settings, email_sender):
        owner = await account_flow.register_owner(store, registration(), mock_settings, email_sender)

        assert owner.kind == AccountKind.OWNER
        assert owner.role == Role.OWNER
        assert owner.account_status == AccountStatus.INACTIVE
        assert owner.account_type == "Standard"
        assert owner.password_hash != "secret-123"
        assert email_sender.to("olivia@globex.io")[0]["subject"] == "Welcome to ProjectFlow, Globex Corp"
        [record] = store.notifications.of_type(NotificationType.OWNER_WELCOME.value)
        assert record["status"] == "SENT"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"email": "OWNER@webblaze.io"}, "Email already registered"),
            ({"company_name": "Web Blaze"}, "Company already registered"),
            ({"company_domain": "webblaze.io"}, "Company Domain already registered"),
            ({"company_id": "CID-WEBBLAZE"}, "Company ID already registered"),
        ],
    )
    async def test_unique_fields(self, store, mock_settings, email_sender, owner, overrides, message):
        with pytest.raises(Conflict, match=message):
            await account_flow.register_owner(store, registration(**overrides), mock_settings, email_sender)

    @pytest.mark.asyncio
    async def test_email_used_by_employee(self, store, mock_settings, email_sender, team_member):
        with pytest.raises(Conflict, match="Email already registered"):
            await account_flow.register_owner(
                store, registration(email=team_member.email), mock_settings, email_sender
            )

    @pytest.mark.asyncio
    async def test_password_mismatch(self, store, mock_settings, email_sender):
        with pytest.raises(ValidationFailed, match="Passwords do not match"):
            await account_flow.register_owner(
                store, registration(confirm_password="other-123"), mock_settings, email_sender
            )

    @pytest.mark.asyncio
    async def test_failed_welcome_email_does_not_fail_registration(self, store, mock_settings, email_sender):
        email_sender.deliver = False

        owner = await account_flow.register_owner(store, registration(), mock_settings, email_sender)

        assert owner.email == "olivia@globex.io"
        [record] = store.notifications.of_type(NotificationType.OWNER_WELCOME.value)
        assert record["status"] == "FAILED"


class TestLogin:
    @pytest.mark.asyncio
    async def test_first_owner_login_activates_account(self, store, mock_settings, email_sender, workspace):
        owner = workspace.owner(account_status="inactive")

        outcome = await account_flow.login(store, owner.email, PASSWORD, mock_settings, email_sender, "10.0.0.1")

        assert outcome.account.account_status == AccountStatus.ACTIVE
        assert outcome.account.last_login is not None
        assert decode_access_token(outcome.token, mock_settings)["sub"] == str(owner.account_id)
        assert email_sender.to(owner.email)[0]["subject"] == "New sign-in to your ProjectFlow account"

    @pytest.mark.asyncio
    async def test_login_alert_respects_owner_setting(self, store, mock_settings, email_sender, workspace):
        owner = workspace.owner(settings={"security": {"login_notifications": False}})

        await account_flow.login(store, owner.email, PASSWORD, mock_settings, email_sender)

        assert email_sender.sent == []

    @pytest.mark.asyncio
    async def test_employee_login_sends_no_alert(self, store, mock_settings, email_sender, team_member):
        outcome = await account_flow.login(store, team_member.email.upper(), PASSWORD, mock_settings, email_sender)

        assert outcome.account.kind == AccountKind.EMPLOYEE
        assert outcome.token
        assert email_sender.sent == []

    @pytest.mark.asyncio
    async def test_unknown_email(self, store, mock_settings, email_sender):
        with pytest.raises(NotFound, match="User not found"):
            await account_flow.login(store, "nobody@nowhere.io", PASSWORD, mock_settings, email_sender)

    @pytest.mark.asyncio
    async def test_wrong_password(self, store, mock_settings, email_sender, owner):
        with pytest.raises(AuthenticationFailed, match="Incorrect password"):
            await account_flow.login(store, owner.email, "wrong-pass", mock_settings, email_sender)

    @pytest.mark.asyncio
    async def test_employee_must_change_temporary_password(self, store, mock_settings, email_sender, workspace, owner):
        hire = workspace.new_hire()

        with pytest.raises(Forbidden, match="Please update your password before logging in"):
            await account_flow.login(store, hire.email, PASSWORD, mock_settings, email_sender)

    @pytest.mark.asyncio
    async def test_expired_temporary_password(self, store, mock_settings, email_sender, workspace, owner):
        hire = workspace.new_hire(expires_in=timedelta(minutes=-1))

        with pytest.raises(Forbidden, match="Temporary password has expired"):
            await account_flow.login(store, hire.email, PASSWORD, mock_settings, email_sender)

    @pytest.mark.asyncio
    async def test_two_factor_returns_challenge(self, store, mock_settings, email_sender, workspace):
        owner = workspace.owner(two_factor_enabled=True, two_factor_secret="JBSWY3DPEHPK3PXP")

        outcome = await account_flow.login(store, owner.email, PASSWORD, mock_settings, email_sender)

        assert outcome.requires_two_factor
        assert outcome.token is None
        assert decode_challenge_token(outcome.challenge_token, mock_settings)["sub"] == str(owner.account_id)
        assert email_sender.sent == []


class TestProfileAndSettings:
    @pytest.mark.asyncio
    async def test_owner_updates_company_details(self, store, owner_principal):
        updated = await account_flow.update_profile(
            store, owner_principal, {"industry": "Software", "website": "https://webblaze.io", "name": "ignored"}
        )

        assert updated.industry == "Software"
        assert updated.website == "https://webblaze.io"

    @pytest.mark.asyncio
    async def test_company_name_is_immutable(self, store, owner_principal):
        with pytest.raises(ValidationFailed, match="Company name cannot be changed"):
            await account_flow.update_profile(store, owner_principal, {"company_name": "Other"})

    @pytest.mark.asyncio
    async def test_employee_cannot_edit_owner_fields(self, store, workspace, team_member):
        with pytest.raises(ValidationFailed, match="No valid update fields provided"):
            await account_flow.update_profile(store, workspace.principal(team_member), {"industry": "Retail"})

    @pytest.mark.asyncio
    async def test_email_change_must_be_unique(self, store, owner_principal, team_member):
        with pytest.raises(Conflict, match="Email already registered"):
            await account_flow.update_profile(store, owner_principal, {"email": team_member.email})

    @pytest.mark.asyncio
    async def test_settings_merge_per_section(self, store, owner_principal):
        await account_flow.update_settings(store, owner_principal, "appearance", {"theme": "dark"})
        section = await account_flow.update_settings(store, owner_principal, "appearance", {"density": "compact"})

        assert section == {"theme": "dark", "density": "compact"}

    @pytest.mark.asyncio
    async def test_security_settings_cannot_toggle_two_factor(self, store, owner_principal):
        section = await account_flow.update_settings(
            store, owner_principal, "security", {"two_factor_auth": True, "login_notifications": False}
        )

        assert section == {"two_factor_auth": False, "login_notifications": False}
        profile = await account_flow.get_profile(store, owner_principal)
        assert profile.two_factor_enabled is False

    @pytest.mark.asyncio
    async def test_unknown_settings_section(self, store, owner_principal):
        with pytest.raises(NotFound, match="Settings section not found"):
            await account_flow.update_settings(store, owner_principal, "billing", {})

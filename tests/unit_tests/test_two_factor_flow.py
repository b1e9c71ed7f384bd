"""Tests for two-factor setup, the login second step and trusted devices."""

from datetime import timedelta

import pyotp
import pytest

from projectflow_api.auth.tokens import create_challenge_token
from projectflow_api.auth.tokens import create_device_token
from projectflow_api.auth.tokens import decode_access_token
from projectflow_api.auth.tokens import decode_device_token
from projectflow_api.workspace.enums import AccountKind
from projectflow_api.workspace.exceptions import AuthenticationFailed
from projectflow_api.workspace.exceptions import NotFound
from projectflow_api.workspace.exceptions import ValidationFailed
from projectflow_api.workspace.orchestrator import account_flow
from projectflow_api.workspace.orchestrator import two_factor_flow
from projectflow_api.workspace.orchestrator.common import utcnow
from tests.fixtures.workspace_fixtures import PASSWORD


async def enable_two_factor(store, principal, settings):
    setup = await two_factor_flow.setup(store, principal, settings)
    await two_factor_flow.enable(store, principal, pyotp.TOTP(setup.secret).now(), settings)
    return setup


async def challenge(store, account, settings, email_sender):
    outcome = await account_flow.login(store, account.email, PASSWORD, settings, email_sender)
    assert outcome.requires_two_factor
    return outcome.challenge_token


class TestManagement:
    @pytest.mark.asyncio
    async def test_setup_leaves_two_factor_disabled(self, store, mock_settings, owner_principal):
        setup = await two_factor_flow.setup(store, owner_principal, mock_settings)

        assert setup.otpauth_url.startswith("otpauth://totp/")
        assert setup.qr_code.startswith("data:image/png;base64,")
        assert len(setup.backup_codes) == mock_settings.backup_code_count
        profile = await account_flow.get_profile(store, owner_principal)
        assert profile.two_factor_enabled is False
        assert profile.two_factor_secret == setup.secret

    @pytest.mark.asyncio
    async def test_enable_sets_both_flags(self, store, mock_settings, owner_principal):
        await enable_two_factor(store, owner_principal, mock_settings)

        profile = await account_flow.get_profile(store, owner_principal)
        assert profile.two_factor_enabled is True
        assert profile.settings["security"]["two_factor_auth"] is True

    @pytest.mark.asyncio
    async def test_enable_without_setup(self, store, mock_settings, owner_principal):
        with pytest.raises(ValidationFailed, match="2FA not set up. Please generate setup first."):
            await two_factor_flow.enable(store, owner_principal, "123456", mock_settings)

    @pytest.mark.asyncio
    async def test_enable_with_wrong_code(self, store, mock_settings, owner_principal):
        setup = await two_factor_flow.setup(store, owner_principal, mock_settings)
        wrong = pyotp.TOTP(setup.secret).at(utcnow() - timedelta(hours=1))

        with pytest.raises(ValidationFailed, match="Invalid verification code"):
            await two_factor_flow.enable(store, owner_principal, wrong, mock_settings)

    @pytest.mark.asyncio
    async def test_setup_refused_when_enabled(self, store, mock_settings, owner_principal):
        await enable_two_factor(store, owner_principal, mock_settings)

        with pytest.raises(ValidationFailed, match="Two-factor authentication is already enabled"):
            await two_factor_flow.setup(store, owner_principal, mock_settings)

    @pytest.mark.asyncio
    async def test_disable_clears_secret_and_codes(self, store, mock_settings, owner_principal):
        setup = await enable_two_factor(store, owner_principal, mock_settings)

        account = await two_factor_flow.disable(store, owner_principal, pyotp.TOTP(setup.secret).now(), mock_settings)

        assert account.two_factor_enabled is False
        assert account.two_factor_secret is None
        assert account.backup_codes == []
        assert account.settings["security"]["two_factor_auth"] is False

    @pytest.mark.asyncio
    async def test_disable_when_not_enabled(self, store, mock_settings, owner_principal):
        with pytest.raises(ValidationFailed, match="2FA is not enabled"):
            await two_factor_flow.disable(store, owner_principal, "123456", mock_settings)

    @pytest.mark.asyncio
    async def test_backup_codes_can_be_regenerated(self, store, mock_settings, owner_principal):
        setup = await enable_two_factor(store, owner_principal, mock_settings)

        fresh = await two_factor_flow.regenerate_backup_codes(store, owner_principal, mock_settings)

        assert fresh != setup.backup_codes
        assert await two_factor_flow.get_backup_codes(store, owner_principal) == fresh


class TestSecondStep:
    @pytest.mark.asyncio
    async def test_totp_completes_login(self, store, mock_settings, email_sender, owner, owner_principal):
        setup = await enable_two_factor(store, owner_principal, mock_settings)
        token = await challenge(store, owner, mock_settings, email_sender)

        outcome = await two_factor_flow.verify_login(
            store, token, pyotp.TOTP(setup.secret).now(), mock_settings, email_sender
        )

        assert decode_access_token(outcome.token, mock_settings)["sub"] == str(owner.account_id)
        assert outcome.device_token is None
        assert outcome.used_backup_code is False
        assert outcome.account.last_login is not None
        assert len(email_sender.to(owner.email)) == 1

    @pytest.mark.asyncio
    async def test_backup_code_is_single_use(self, store, mock_settings, email_sender, owner, owner_principal):
        setup = await enable_two_factor(store, owner_principal, mock_settings)
        token = await challenge(store, owner, mock_settings, email_sender)
        code = setup.backup_codes[0]

        outcome = await two_factor_flow.verify_login(store, token, code.lower(), mock_settings, email_sender)

        assert outcome.used_backup_code is True
        assert code not in await two_factor_flow.get_backup_codes(store, owner_principal)
        with pytest.raises(AuthenticationFailed, match="Invalid verification code"):
            await two_factor_flow.verify_login(store, token, code, mock_settings, email_sender)

    @pytest.mark.asyncio
    async def test_access_token_is_not_a_challenge(self, store, mock_settings, email_sender, workspace, owner, owner_principal):
        await enable_two_factor(store, owner_principal, mock_settings)

        with pytest.raises(AuthenticationFailed):
            await two_factor_flow.verify_login(store, workspace.token(owner), "123456", mock_settings, email_sender)

    @pytest.mark.asyncio
    async def test_second_step_without_two_factor(self, store, mock_settings, email_sender, owner):
        token = create_challenge_token(owner.account_id, AccountKind.OWNER, mock_settings)

        with pytest.raises(ValidationFailed, match="2FA is not enabled"):
            await two_factor_flow.verify_login(store, token, "123456", mock_settings, email_sender)


class TestTrustedDevices:
    @pytest.mark.asyncio
    async def test_remembered_device_skips_second_factor(self, store, mock_settings, email_sender, team_member, workspace):
        principal = workspace.principal(team_member)
        setup = await enable_two_factor(store, principal, mock_settings)
        token = await challenge(store, team_member, mock_settings, email_sender)

        first = await two_factor_flow.verify_login(
            store,
            token,
            pyotp.TOTP(setup.secret).now(),
            mock_settings,
            email_sender,
            remember_device=True,
            device_name="Work laptop",
        )
        assert decode_device_token(first.device_token, mock_settings)["device_id"] == first.device_id

        second = await two_factor_flow.validate_device(
            store, await challenge(store, team_member, mock_settings, email_sender), first.device_token, mock_settings, email_sender
        )

        assert second.device_id == first.device_id
        [device] = await two_factor_flow.list_trusted_devices(store, principal)
        assert device.device_name == "Work laptop"
        assert device.last_used is not None

    @pytest.mark.asyncio
    async def test_device_of_another_account(self, store, mock_settings, email_sender, owner, owner_principal, team_member):
        await enable_two_factor(store, owner_principal, mock_settings)
        foreign = create_device_token(team_member.account_id, AccountKind.EMPLOYEE, "dev-1", mock_settings)

        with pytest.raises(AuthenticationFailed, match="Invalid device token"):
            await two_factor_flow.validate_device(
                store, await challenge(store, owner, mock_settings, email_sender), foreign, mock_settings, email_sender
            )

    @pytest.mark.asyncio
    async def test_unknown_device(self, store, mock_settings, email_sender, owner, owner_principal):
        await enable_two_factor(store, owner_principal, mock_settings)
        token = create_device_token(owner.account_id, AccountKind.OWNER, "never-registered", mock_settings)

        with pytest.raises(AuthenticationFailed, match="Device not trusted"):
            await two_factor_flow.validate_device(
                store, await challenge(store, owner, mock_settings, email_sender), token, mock_settings, email_sender
            )

    @pytest.mark.asyncio
    async def test_expired_device_is_pruned(self, store, mock_settings, email_sender, owner, owner_principal):
        await enable_two_factor(store, owner_principal, mock_settings)
        now = utcnow()
        store.owners._find(account_id=owner.account_id)["trusted_devices"] = [
            {
                "device_id": "old-device",
                "device_name": "Old phone",
                "created_at": (now - timedelta(days=8)).isoformat(),
                "expires_at": (now - timedelta(days=1)).isoformat(),
            }
        ]
        token = create_device_token(owner.account_id, AccountKind.OWNER, "old-device", mock_settings)

        with pytest.raises(AuthenticationFailed, match="Device token expired"):
            await two_factor_flow.validate_device(
                store, await challenge(store, owner, mock_settings, email_sender), token, mock_settings, email_sender
            )
        assert await two_factor_flow.list_trusted_devices(store, owner_principal) == []

    @pytest.mark.asyncio
    async def test_remove_device(self, store, mock_settings, email_sender, owner, owner_principal):
        setup = await enable_two_factor(store, owner_principal, mock_settings)
        outcome = await two_factor_flow.verify_login(
            store,
            await challenge(store, owner, mock_settings, email_sender),
            pyotp.TOTP(setup.secret).now(),
            mock_settings,
            email_sender,
            remember_device=True,
        )

        await two_factor_flow.remove_trusted_device(store, owner_principal, outcome.device_id)

        assert await two_factor_flow.list_trusted_devices(store, owner_principal) == []
        with pytest.raises(NotFound, match="Device not found"):
            await two_factor_flow.remove_trusted_device(store, owner_principal, outcome.device_id)

"""Tests for password hashing, signed tokens, reset OTPs and two-factor primitives."""

from datetime import datetime
from datetime import timedelta
from datetime import timezone
from uuid import uuid4

import pyotp
import pytest

from projectflow_api.auth import passwords
from projectflow_api.auth import tokens
from projectflow_api.workspace.enums import AccountKind
from projectflow_api.workspace.exceptions import AuthenticationFailed
from projectflow_api.workspace.exceptions import ValidationFailed
from projectflow_api.workspace.models.account import OwnerAccount
from projectflow_api.workspace.security import otp
from projectflow_api.workspace.security import two_factor
from tests.fixtures.workspace_fixtures import PASSWORD
from tests.fixtures.workspace_fixtures import password_hash

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


def make_owner(**overrides) -> OwnerAccount:
    return OwnerAccount(
        account_id=uuid4(),
        email="owner@webblaze.io",
        password_hash="x",
        company_name="Web Blaze",
        first_name="Olivia",
        company_domain="webblaze.io",
        company_id="CID-1",
        company_address="1 Market Street",
        **overrides,
    )


class TestPasswords:
    def test_hash_verifies(self):
        hashed = password_hash()

        assert hashed != PASSWORD
        assert passwords.verify_password(PASSWORD, hashed)
        assert not passwords.verify_password("wrong-password", hashed)

    def test_empty_input_is_rejected_without_raising(self):
        assert not passwords.verify_password("", password_hash())
        assert not passwords.verify_password(PASSWORD, "")

    def test_temporary_password_shape(self):
        temporary = passwords.generate_temporary_password()

        assert len(temporary) == 12
        int(temporary, 16)


class TestTokens:
    def test_login_token_round_trip(self, mock_settings):
        account_id = uuid4()
        token = tokens.create_login_token(account_id, AccountKind.EMPLOYEE, mock_settings)

        claims = tokens.decode_access_token(token, mock_settings)

        assert claims["sub"] == str(account_id)
        assert claims["kind"] == "employee"
        assert claims["exp"] - claims["iat"] == mock_settings.login_token_ttl_hours * 3600

    def test_session_token_is_shorter_lived(self, mock_settings):
        claims = tokens.decode_access_token(
            tokens.create_session_token(uuid4(), AccountKind.OWNER, mock_settings), mock_settings
        )

        assert claims["exp"] - claims["iat"] == mock_settings.session_token_ttl_hours * 3600

    def test_tampered_token(self, mock_settings):
        token = tokens.create_login_token(uuid4(), AccountKind.OWNER, mock_settings)

        with pytest.raises(AuthenticationFailed, match="Invalid token"):
            tokens.decode_access_token(token[:-2] + ("AA" if not token.endswith("AA") else "BB"), mock_settings)

    def test_challenge_token_cannot_access_api(self, mock_settings):
        token = tokens.create_challenge_token(uuid4(), AccountKind.OWNER, mock_settings)

        with pytest.raises(AuthenticationFailed):
            tokens.decode_access_token(token, mock_settings)
        assert tokens.decode_challenge_token(token, mock_settings)["type"] == tokens.CHALLENGE_TOKEN_TYPE

    def test_login_token_is_not_a_challenge(self, mock_settings):
        token = tokens.create_login_token(uuid4(), AccountKind.OWNER, mock_settings)

        with pytest.raises(AuthenticationFailed, match="Invalid two-factor challenge"):
            tokens.decode_challenge_token(token, mock_settings)

    def test_device_token(self, mock_settings):
        token = tokens.create_device_token(uuid4(), AccountKind.EMPLOYEE, "abc123", mock_settings)

        assert tokens.decode_device_token(token, mock_settings)["device_id"] == "abc123"
        with pytest.raises(AuthenticationFailed, match="Invalid device token"):
            tokens.decode_device_token("garbage", mock_settings)


class TestResetOtp:
    def test_generate_otp_is_six_digits(self):
        for _ in range(20):
            code = otp.generate_otp()
            assert len(code) == 6 and code.isdigit()

    def test_issue_replaces_previous_state(self):
        fields = otp.issue_fields("123456", NOW, 10)

        assert fields == {"reset_otp": "123456", "reset_otp_expiry": NOW + timedelta(minutes=10), "otp_verified_at": None}

    def test_is_valid(self):
        account = make_owner(reset_otp="123456", reset_otp_expiry=NOW + timedelta(minutes=10))

        assert otp.is_valid(account, "123456", NOW)
        assert not otp.is_valid(account, "654321", NOW)
        assert not otp.is_valid(account, "123456", NOW + timedelta(minutes=11))
        assert not otp.is_valid(make_owner(), "123456", NOW)

    def test_malformed_code_is_rejected(self):
        account = make_owner(reset_otp="123456", reset_otp_expiry=NOW + timedelta(minutes=10))

        assert not otp.is_valid(account, "\u00e9\u00e9\u00e9\u00e9\u00e9\u00e9", NOW)
        assert not otp.is_valid(account, "12345", NOW)
        assert not otp.is_valid(account, "１２３４５６", NOW)

    def test_can_reset_within_window(self):
        account = make_owner(otp_verified_at=NOW)

        assert otp.can_reset(account, NOW + timedelta(minutes=9), 10)
        assert not otp.can_reset(account, NOW + timedelta(minutes=11), 10)
        assert not otp.can_reset(make_owner(), NOW, 10)

    def test_check_new_password(self):
        otp.check_new_password("abcdef", "abcdef")
        with pytest.raises(ValidationFailed, match="at least 6 characters"):
            otp.check_new_password("abc")
        with pytest.raises(ValidationFailed, match="Passwords do not match"):
            otp.check_new_password("abcdef", "abcdeg")


class TestTwoFactor:
    def test_flag_written_to_both_locations(self):
        account = make_owner(settings={"security": {"login_notifications": True}})

        fields = two_factor.flag_fields(account, True)

        assert fields["two_factor_enabled"] is True
        assert fields["settings"]["security"] == {"login_notifications": True, "two_factor_auth": True}
        assert account.settings["security"] == {"login_notifications": True}

    def test_either_location_enables(self):
        assert two_factor.is_enabled(make_owner(two_factor_enabled=True))
        assert two_factor.is_enabled(make_owner(settings={"security": {"two_factor_auth": True}}))
        assert not two_factor.is_enabled(make_owner())

    def test_totp_verification(self):
        secret = two_factor.generate_secret()
        code = pyotp.TOTP(secret).at(NOW)

        assert two_factor.verify_totp(secret, code, 2, now=NOW)
        assert not two_factor.verify_totp(secret, code, 2, now=NOW + timedelta(minutes=10))
        assert not two_factor.verify_totp(None, code, 2, now=NOW)

    def test_provisioning_uri_and_qr(self):
        uri = two_factor.provisioning_uri(two_factor.generate_secret(), "owner@webblaze.io", "ProjectFlow")

        assert uri.startswith("otpauth://totp/")
        assert "issuer=ProjectFlow" in uri
        assert two_factor.qr_code_data_url(uri).startswith("data:image/png;base64,")

    def test_backup_codes(self):
        codes = two_factor.generate_backup_codes(8)

        assert len(codes) == 8
        assert all(len(code) == 8 and code == code.upper() for code in codes)
        assert two_factor.normalize_backup_code(" ab12-cd34 ") == "AB12CD34"

    def test_trusted_devices(self):
        device = two_factor.new_trusted_device(NOW, 7, "Laptop", "10.0.0.1", "pytest")
        expired = two_factor.new_trusted_device(NOW - timedelta(days=8), 7)

        assert device.expires_at == NOW + timedelta(days=7)
        assert expired.device_name == "Unknown device"
        assert two_factor.active_devices([device, expired], NOW) == [device]
        assert two_factor.find_device([device, expired], device.device_id) is device
        assert two_factor.find_device([device], "missing") is None
        assert two_factor.devices_payload([device])[0]["device_id"] == device.device_id

"""Tests for two-factor management and the second login step over HTTP."""

import pyotp
import pytest
from fastapi import status

from tests.consts import API_BASE
from tests.fixtures.workspace_fixtures import PASSWORD


@pytest.fixture
def secret(client):
    """Owner with two-factor authentication enabled; returns the TOTP secret."""
    setup = client.post(f"{API_BASE}/two-factor/setup").json()
    client.post(f"{API_BASE}/two-factor/enable", json={"code": pyotp.TOTP(setup["secret"]).now()})
    return setup["secret"]


def challenge(unauthenticated_client, owner) -> str:
    body = unauthenticated_client.post(f"{API_BASE}/login", json={"email": owner.email, "password": PASSWORD}).json()
    assert body["requires_two_factor"] is True
    return body["challenge_token"]


class TestManagementRoutes:
    def test_setup(self, client, mock_settings):
        response = client.post(f"{API_BASE}/two-factor/setup")

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["otpauth_url"].startswith("otpauth://totp/")
        assert body["qr_code"].startswith("data:image/png;base64,")
        assert len(body["backup_codes"]) == mock_settings.backup_code_count

    def test_enable_and_profile_flag(self, client):
        setup = client.post(f"{API_BASE}/two-factor/setup").json()

        response = client.post(f"{API_BASE}/two-factor/enable", json={"code": pyotp.TOTP(setup["secret"]).now()})

        assert response.json() == {"message": "Two-factor authentication enabled successfully"}
        assert client.get(f"{API_BASE}/profile").json()["user"]["two_factor_enabled"] is True

    def test_enable_without_setup(self, client):
        response = client.post(f"{API_BASE}/two-factor/enable", json={"code": "123456"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == "2FA not set up. Please generate setup first."

    def test_disable(self, client, secret):
        response = client.post(f"{API_BASE}/two-factor/disable", json={"code": pyotp.TOTP(secret).now()})

        assert response.json() == {"message": "Two-factor authentication disabled successfully"}
        assert client.get(f"{API_BASE}/profile").json()["user"]["two_factor_enabled"] is False

    def test_backup_codes(self, client, secret):
        listed = client.get(f"{API_BASE}/two-factor/backup-codes").json()
        regenerated = client.post(f"{API_BASE}/two-factor/backup-codes/regenerate").json()

        assert listed["remaining"] == len(listed["backup_codes"])
        assert regenerated["message"] == "Backup codes regenerated"
        assert client.get(f"{API_BASE}/two-factor/backup-codes").json()["backup_codes"] == regenerated["backup_codes"]


class TestSecondStepRoutes:
    def test_verify_with_totp(self, client, unauthenticated_client, owner, secret):
        response = unauthenticated_client.post(
            f"{API_BASE}/two-factor/verify",
            json={"challenge_token": challenge(unauthenticated_client, owner), "code": pyotp.TOTP(secret).now()},
        )

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["message"] == "Login successful"
        assert body["token"]
        assert body["device_token"] is None
        assert body["user"]["email"] == owner.email

    def test_verify_with_backup_code(self, client, unauthenticated_client, owner, secret):
        code = client.get(f"{API_BASE}/two-factor/backup-codes").json()["backup_codes"][0]

        response = unauthenticated_client.post(
            f"{API_BASE}/two-factor/verify",
            json={"challenge_token": challenge(unauthenticated_client, owner), "code": code},
        )

        assert response.json()["message"] == "Login successful using backup code"

    def test_wrong_code(self, client, unauthenticated_client, owner, secret):
        response = unauthenticated_client.post(
            f"{API_BASE}/two-factor/verify",
            json={"challenge_token": challenge(unauthenticated_client, owner), "code": "not-a-code"},
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"] == "Invalid verification code"

    def test_trusted_device_round_trip(self, client, unauthenticated_client, owner, secret):
        remembered = unauthenticated_client.post(
            f"{API_BASE}/two-factor/verify",
            json={
                "challenge_token": challenge(unauthenticated_client, owner),
                "code": pyotp.TOTP(secret).now(),
                "remember_device": True,
                "device_name": "Work laptop",
            },
        ).json()

        validated = unauthenticated_client.post(
            f"{API_BASE}/two-factor/validate-device",
            json={"challenge_token": challenge(unauthenticated_client, owner), "device_token": remembered["device_token"]},
        )

        assert validated.status_code == status.HTTP_200_OK
        assert validated.json()["message"] == "Device verified"
        assert validated.json()["device_id"] == remembered["device_id"]
        [device] = client.get(f"{API_BASE}/two-factor/trusted-devices").json()["devices"]
        assert device["device_name"] == "Work laptop"

        removed = client.delete(f"{API_BASE}/two-factor/trusted-devices/{remembered['device_id']}")

        assert removed.json() == {"message": "Device removed successfully"}
        assert client.get(f"{API_BASE}/two-factor/trusted-devices").json() == {"devices": []}

    def test_remove_unknown_device(self, client, secret):
        response = client.delete(f"{API_BASE}/two-factor/trusted-devices/nope")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["detail"] == "Device not found"

"""One-time codes, TOTP secrets, backup codes and trusted devices."""

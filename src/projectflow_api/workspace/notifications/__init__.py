"""Email notifications: SMTP delivery, outbox bookkeeping and message templates."""

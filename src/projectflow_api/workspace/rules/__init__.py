"""Pure policy rules: authorization matrix, identifiers and the task lifecycle."""

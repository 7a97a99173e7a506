"""Release pipeline: ordered fail-fast steps, then one published release."""

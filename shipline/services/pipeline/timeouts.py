from __future__ import annotations

# Local git operations (checkout of an already fetched commit)
GIT_TIMEOUT_SECONDS = 60.0

# Network-bound git operations (clone)
GIT_CLONE_TIMEOUT_SECONDS = 15 * 60.0

# rustup downloads a whole toolchain
TOOLCHAIN_TIMEOUT_SECONDS = 30 * 60.0

# GH / API operations
GH_TIMEOUT_SECONDS = 60.0

# Uploading the archive
GH_UPLOAD_TIMEOUT_SECONDS = 10 * 60.0

# Idempotent GH read retry policy
GH_READ_RETRY_ATTEMPTS = 3
GH_READ_RETRY_DELAY_SECONDS = 1.0

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""authcore - authentication and token-lifecycle engine.

Issues, verifies and rotates credentials for a multi-tenant identity
service: password login, social-login linking, access and rotating
refresh tokens, single-use verification and reset tokens, and per-caller
rate limiting.
"""

__version__ = "1.0.0"

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API layer for authcore.

This package provides the FastAPI application factory
(``authcore.api.app.create_app``), the middleware and the auth endpoints.
"""

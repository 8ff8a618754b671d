# Copyright (c) 2024 deploy-helper Contributors
# MIT License

"""
deploy-helper: playbook-driven automation runner.

Reads an ordered list of plays targeting local or remote hosts and runs
their tasks host by host, reporting success or failure per host.

Features:
    - YAML playbooks with per-task vars, register, when, loop
    - Jinja2 templating with type-preserving substitution and from_json
    - Local (asyncio subprocess) and SSH (asyncssh) connections
    - shell, command and debug modules behind an open module registry

This package exposes release metadata; the CLI lives in deploy_helper.cli.
"""

from __future__ import annotations

from deploy_helper.release import __version__, __author__

__all__ = [
    "__version__",
    "__author__",
]

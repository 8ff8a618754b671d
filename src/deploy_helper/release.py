# Copyright (c) 2024 deploy-helper Contributors
# MIT License

"""deploy-helper release metadata."""

from __future__ import annotations

__version__ = "1.1.0"
__author__ = "deploy-helper Contributors"

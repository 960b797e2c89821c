# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""Output formatting for CLI commands."""

from __future__ import annotations

import json
import sys
from typing import Any


def output_result(data: dict[str, Any] | list[Any], output_format: str = "json") -> None:
    """Print a command result.

    ``json`` pretty-prints the data. ``text`` prints one line per item for
    lists of dicts and falls back to JSON otherwise.
    """
    if output_format == "text" and isinstance(data, list):
        for item in data:
            if isinstance(item, dict):
                print("  ".join(str(v) for v in item.values()))
            else:
                print(item)
        return
    print(json.dumps(data, indent=2, default=str))


def output_error(message: str) -> None:
    """Print error message to stderr."""
    print(f"Error: {message}", file=sys.stderr)

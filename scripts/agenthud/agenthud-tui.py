#!/usr/bin/env python3
"""Thin entrypoint for the agenthud dashboard."""

from __future__ import annotations

from hud_core.app import main


if __name__ == "__main__":
    raise SystemExit(main())

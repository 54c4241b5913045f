#!/usr/bin/env python3
"""
LaLA audit CLI entry point.

Usage:
    lala-audit --config lala.yaml related-tables user_enrolments 3 4 5
    lala-audit collect-related user_enrolments 3 4 5 --output-dir ./out
    lala-audit show-version 12 --json
"""

from cli.cmds.audit import cli


if __name__ == '__main__':
    cli()

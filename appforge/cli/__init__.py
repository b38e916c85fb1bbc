"""Appforge CLI — Typer-based command-line interface.

Provides the ``appforge`` command with subcommands for provisioning an
application, previewing slugs and inspecting run history.

All output uses Rich for formatted terminal display.
"""

"""teststream CLI — Typer-based command-line interface.

Provides the ``teststream`` command with subcommands that render a
``go test -json`` stream, rank its slowest tests, and dump run metrics.

All output uses Rich for formatted terminal display.
"""

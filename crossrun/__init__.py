"""
crossrun — cross-platform pipeline execution engine.

Runs pre-conditions, steps and tests as shell commands against a target
platform, with retry/backoff, parameter templating and parallel steps.
"""

__version__ = "0.1.0"

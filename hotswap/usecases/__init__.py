"""Use-case layer for the upgrade pipeline.

Each module performs one pipeline step against domain objects and ports;
``run_upgrade`` sequences them and owns the fatal/warn-only policy.
"""

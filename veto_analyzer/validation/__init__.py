"""Validation utilities.

This package contains *non-interactive* tooling for validating the veto
processor against runs with known properties.

Design goals
------------
1) Keep generators deterministic (seeded) so expectations are reproducible.
2) Produce the same record types the decoder hands over, so the full
   processor runs unchanged on synthetic data.
"""
from .synthetic import make_record, make_veto_run, shift_clock

__all__ = ["make_record", "make_veto_run", "shift_clock"]

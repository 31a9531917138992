"""Veto Analyzer -- Python tooling for muon-veto data quality and muon tagging.

The veto is a 32-panel scintillator array read out by two QDC cards, a scaler
and the SBC clock. This package processes one run of decoded veto entries and
provides tools for:
- Finding per-panel QDC software thresholds from the pedestal position
- Classifying each entry against a fixed taxonomy of integrity and sync errors
- Reconciling the scaler and SBC clocks, including scaler-jump recovery
- Measuring the LED pulser frequency
- Tagging muon candidates from plane hit patterns
- Building per-entry output records and a run summary

Key principles:
- Every entry is emitted exactly once; bad entries are flagged, never dropped
- Passes are sequential and re-read the run from the start
- Full traceability: run-level warnings are logged and kept on the results

Main subpackages:
- analysis: thresholds, error checks, clock reconciliation, LED, muon ID, processor
- ingest: re-iterable record streams
- models: data models (VetoRecord, VetoEvent, ErrorSet, RunContext, OutputRecord)
- validation: synthetic run generation for tests and validation campaigns
"""

__all__ = []

"""
Shipment Import Package

Loads a shipment spreadsheet grid into a PostgreSQL table under a
cross-process lock, batch by batch.

Modules:
- cells / grid: Tagged cell values and the 1-origin grid adapter
- normalizer / mapping: Header cleanup and source -> destination mapping
- inference: Column type inference
- validator: Reconciliation with the live table schema
- transform: Per-batch pipeline (filter and audit stamp included)
- locks: Advisory import lock
- table_ops: Table clear, identity and index maintenance
- load: Transactional bulk insert
- extract: Google Sheets grid source
- run_etl: Run orchestration and entry point
"""

__version__ = "1.0.0"
__author__ = "Data Engineering Team"

"""
Import Options

Run parameters passed to the orchestrator by the entry point.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from shipment_etl.locks import DEFAULT_LOCK_RESOURCE


@dataclass
class ImportOptions:
    """
    Tunables for a single import run.

    Attributes:
        batch_size: Grid rows per batch (clamped to the available rows)
        preserve_identity: Carry the identity high-water mark across the clear
        column_overrides: Explicit source -> destination column mapping
        lock_timeout_ms: 0 fails fast, None waits forever
        lock_resource: Name of the cross-process import lock
    """

    batch_size: int = 2000
    preserve_identity: bool = False
    column_overrides: Optional[Dict[str, str]] = None
    lock_timeout_ms: Optional[int] = 0
    lock_resource: str = DEFAULT_LOCK_RESOURCE

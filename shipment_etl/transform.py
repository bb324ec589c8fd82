"""
Batch Transformation

Turns one sliced row window into a load-ready batch:
- Column name normalization and operator overrides
- Schema validation (unknown columns dropped)
- Type inference
- Shipment row filter (rows without a model are incomplete records)
- Last-modified audit stamp
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Mapping, Optional, Tuple

import pandas as pd

from shipment_etl.cells import Cell, CellKind
from shipment_etl.inference import InferredColumnType, TypeInferenceEngine
from shipment_etl.mapping import ColumnMapping, apply_overrides
from shipment_etl.normalizer import LAST_MODIFIED, MODEL, ColumnNormalizer
from shipment_etl.validator import SchemaValidator, TargetSchema

logger = logging.getLogger(__name__)


@dataclass
class PreparedBatch:
    """A batch ready for the bulk writer."""

    window: Tuple[int, int]
    frame: pd.DataFrame
    mapping: ColumnMapping
    column_types: Dict[str, InferredColumnType] = field(default_factory=dict)
    rows_read: int = 0
    rows_filtered: int = 0
    dropped_columns: List[str] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.frame)

    @property
    def destination_columns(self) -> List[str]:
        return [self.mapping[source] for source in self.frame.columns]


class BatchTransformer:
    """
    Applies the per-batch pipeline to a sliced DataFrame of cells.
    """

    def __init__(
        self,
        schema: TargetSchema,
        column_overrides: Optional[Mapping[str, str]] = None,
        normalizer: Optional[ColumnNormalizer] = None,
        inference: Optional[TypeInferenceEngine] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Args:
            schema: Column set of the target table
            column_overrides: Explicit source -> destination overrides
            normalizer: Column normalizer (default shipment canonical set)
            inference: Type inference engine
            clock: Source of the audit timestamp
        """
        self.schema = schema
        self.column_overrides = column_overrides
        self.normalizer = normalizer or ColumnNormalizer()
        self.validator = SchemaValidator(schema)
        self.inference = inference or TypeInferenceEngine()
        self.clock = clock

    def transform(self, frame: pd.DataFrame, window: Tuple[int, int]) -> PreparedBatch:
        """
        Run normalize -> validate -> infer -> filter -> stamp on one batch.

        Args:
            frame: DataFrame of Cell objects for the window
            window: Grid rows covered by the frame

        Returns:
            PreparedBatch (may hold zero rows)
        """
        rows_read = len(frame)
        sources = list(frame.columns)

        mapping = self.normalizer.build_mapping(sources)
        mapping = apply_overrides(mapping, self.column_overrides)
        logger.info(f"Columns in batch: {', '.join(sources)}")
        logger.info(f"Column mapping: {mapping.describe()}")

        validation = self.validator.validate(sources, mapping)
        kept = [source for source in sources if source in validation.mapping]
        # Model columns the validator dropped still decide which rows survive
        model_columns = mapping.sources_for(MODEL)
        carried = [source for source in model_columns if source not in validation.mapping]
        frame = frame.loc[:, kept + carried].copy()

        batch = PreparedBatch(
            window=window,
            frame=frame,
            mapping=validation.mapping,
            rows_read=rows_read,
            dropped_columns=validation.dropped_sources,
        )

        self.inference.apply(batch.frame, batch.column_types)

        batch.frame = self._filter_rows(batch.frame, model_columns)
        if carried:
            batch.frame = batch.frame.drop(columns=carried)
            for source in carried:
                batch.column_types.pop(source, None)
        batch.rows_filtered = rows_read - len(batch.frame)
        if batch.rows_filtered:
            logger.debug(f"Dropped {batch.rows_filtered} rows without {MODEL} in rows {window[0]}..{window[1]}")

        if len(batch.frame):
            self._stamp_last_modified(batch)

        return batch

    @staticmethod
    def _filter_rows(frame: pd.DataFrame, model_columns: List[str]) -> pd.DataFrame:
        """
        Keep rows that have a value in at least one model column.

        When no column maps to the model destination every row is kept.
        """
        model_columns = [source for source in model_columns if source in frame.columns]
        if not model_columns:
            return frame

        keep = [
            any(not cell.is_blank for cell in row)
            for row in frame[model_columns].itertuples(index=False, name=None)
        ]
        mask = pd.Series(keep, index=frame.index, dtype=bool)
        return frame.loc[mask].reset_index(drop=True)

    def _stamp_last_modified(self, batch: PreparedBatch) -> None:
        """
        Write the import time into the last-modified column.

        A missing or non-datetime column is (re)built with the timestamp in
        every row; an existing datetime column only has its empty cells filled.
        """
        if LAST_MODIFIED not in self.schema:
            logger.debug(f"Target table has no {LAST_MODIFIED} column; skipping audit stamp")
            return

        stamp = Cell.timestamp(self.clock())
        frame = batch.frame
        sources = batch.mapping.sources_for(LAST_MODIFIED)
        source = sources[-1] if sources else None

        if source is None:
            frame[LAST_MODIFIED] = pd.Series([stamp] * len(frame), index=frame.index, dtype=object)
            batch.mapping[LAST_MODIFIED] = self.schema.actual_name(LAST_MODIFIED)
        elif batch.column_types.get(source) is not InferredColumnType.DATETIME:
            frame[source] = pd.Series([stamp] * len(frame), index=frame.index, dtype=object)
        else:
            frame[source] = pd.Series(
                [stamp if cell.kind is CellKind.NULL else cell for cell in frame[source]],
                index=frame.index,
                dtype=object,
            )

        column = source or LAST_MODIFIED
        batch.column_types[column] = InferredColumnType.DATETIME

"""Schema validators for tabular diagnostics and rate tables."""

from __future__ import annotations

import polars as pl
from dataclasses import dataclass
import pandas as pd


@dataclass(frozen=True)
class Schema:
    name: str
    schema: pl.Schema

    def validate(self, frame: pd.DataFrame) -> None:
        missing = [column for column in self.schema.names() if column not in frame.columns]
        if missing:
            msg = f"{self.name} schema validation failed: missing columns {missing}"
            raise ValueError(msg)
        try:
            pl.from_pandas(frame[self.schema.names()]).cast(dict(self.schema))
        except Exception as exc:  # pragma: no cover - polars details vary
            msg = f"{self.name} schema validation failed: {exc}"
            raise ValueError(msg) from exc


INDEL_RATE_TABLE_SCHEMA = Schema(
    name="indel_rate_table",
    schema=pl.Schema(
        {
            "repeat_pattern_size": pl.Int64,
            "repeat_count": pl.Int64,
            "indel_type": pl.Utf8,
            "error_rate": pl.Float64,
            "noisy_locus_rate": pl.Float64,
        }
    ),
)

QUALITY_MARGINAL_SCHEMA = Schema(
    name="quality_marginals",
    schema=pl.Schema(
        {
            "quality": pl.Int64,
            "total_ref": pl.Int64,
            "total_alt": pl.Int64,
        }
    ),
)

DEPTH_HISTOGRAM_SCHEMA = Schema(
    name="depth_histogram",
    schema=pl.Schema(
        {
            "depth": pl.Int64,
            "observations": pl.Int64,
        }
    ),
)

from __future__ import annotations

"""Grouped accuracy tables over attempt rows."""

import numpy as np
import pandas as pd

from .config import AnalyticsConfig


def accuracy_by(df: pd.DataFrame, column: str, cfg: AnalyticsConfig | None = None) -> pd.DataFrame:
    """Attempts, correct answers and accuracy (0..1) per value of ``column``.

    Groups with fewer than ``cfg.min_attempts`` attempts are dropped.
    Returns columns [column, attempts, correct, accuracy] sorted by ``column``.
    """
    cfg = cfg or AnalyticsConfig()
    if column not in df.columns:
        raise KeyError(f"Unknown column: {column}")
    if df.empty:
        return pd.DataFrame(
            {
                column: pd.Series(dtype=df[column].dtype),
                "attempts": pd.Series(dtype="int64"),
                "correct": pd.Series(dtype="int64"),
                "accuracy": pd.Series(dtype="float32"),
            }
        )
    grouped = df.groupby(column, observed=True)["is_correct"]
    out = pd.DataFrame(
        {
            "attempts": grouped.size().astype("int64"),
            "correct": grouped.sum().astype("int64"),
        }
    )
    attempts = out["attempts"].to_numpy(dtype="float32")
    correct = out["correct"].to_numpy(dtype="float32")
    out["accuracy"] = np.divide(correct, attempts, out=np.zeros_like(correct), where=attempts > 0).astype("float32")
    out = out[out["attempts"] >= int(cfg.min_attempts)]
    return out.reset_index().sort_values(column, kind="stable").reset_index(drop=True)

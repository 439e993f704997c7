from __future__ import annotations

"""Smoothing utilities (EWMA by session)."""

import pandas as pd

from .config import AnalyticsConfig


def ewma_accuracy(sessions: pd.DataFrame, cfg: AnalyticsConfig | None = None) -> pd.DataFrame:
    """Add ``accuracy_smooth``: EWMA of session accuracy per profile, in session order.

    Sessions without answers (NaN accuracy) are skipped by the EWMA and keep
    the previous smoothed value. Returns a copy sorted by ``session_idx``.
    """
    cfg = cfg or AnalyticsConfig()
    g = sessions.sort_values("session_idx").copy()
    if g.empty:
        g["accuracy_smooth"] = pd.Series(dtype="float32")
        return g
    keys = g["profile_id"].astype("Int64").fillna(-1)
    # SeriesGroupBy.transform keeps row alignment
    smooth = g["accuracy"].astype("float64").groupby(keys).transform(
        lambda s: s.ewm(span=int(cfg.smoothing_span), ignore_na=True).mean().ffill()
    )
    g["accuracy_smooth"] = smooth.astype("float32")
    return g

from __future__ import annotations

import math
from typing import Any, List, Optional, Sequence, Tuple

import numpy as np

from .errors import InvalidInput

# Scores at or below this are "forbidden": only chosen when no alternative
# exists, and then dropped from the output.
FORBIDDEN_SCORE = -1e9


def _cell(v: Any) -> float:
    if v is None or isinstance(v, bool):
        return 0.0
    try:
        f = float(v)
    except (TypeError, ValueError):
        return 0.0
    return f if math.isfinite(f) else 0.0


def _as_score_matrix(scores: Any) -> np.ndarray:
    """Rectangular float matrix; ragged rows are zero-padded, junk cells become 0."""
    if isinstance(scores, np.ndarray):
        if scores.ndim != 2:
            raise InvalidInput(f"score matrix must be 2-D, got shape {scores.shape}")
        rows: Sequence[Sequence[Any]] = scores.tolist()
    else:
        rows = list(scores or [])
    width = 0
    for r in rows:
        if isinstance(r, (str, bytes)) or not hasattr(r, "__len__"):
            raise InvalidInput(f"score matrix rows must be sequences, got {r!r}")
        width = max(width, len(r))
    out = np.zeros((len(rows), width), dtype=float)
    for i, r in enumerate(rows):
        for j, v in enumerate(r):
            out[i, j] = _cell(v)
    return out


def _hungarian_min(cost: np.ndarray) -> np.ndarray:
    """
    Minimum-cost perfect matching on a square matrix (shortest augmenting
    path with row/column potentials), O(n^3). Returns row -> column.
    """
    n = cost.shape[0]
    u = np.zeros(n + 1)
    v = np.zeros(n + 1)
    p = np.zeros(n + 1, dtype=int)    # p[j]: row (1-based) matched to column j, 0 = free
    way = np.zeros(n + 1, dtype=int)

    for i in range(1, n + 1):
        p[0] = i
        j0 = 0
        minv = np.full(n + 1, np.inf)
        used = np.zeros(n + 1, dtype=bool)
        while True:
            used[j0] = True
            i0 = p[j0]
            free = ~used[1:]
            cur = cost[i0 - 1] - u[i0] - v[1:]
            better = free & (cur < minv[1:])
            minv[1:][better] = cur[better]
            way[1:][better] = j0
            masked = np.where(free, minv[1:], np.inf)
            j1 = int(np.argmin(masked)) + 1
            delta = masked[j1 - 1]
            u[p[used]] += delta
            v[used] -= delta
            minv[~used] -= delta
            j0 = j1
            if p[j0] == 0:
                break
        while j0:
            j1 = way[j0]
            p[j0] = p[j1]
            j0 = j1

    row_to_col = np.full(n, -1, dtype=int)
    for j in range(1, n + 1):
        if p[j]:
            row_to_col[p[j] - 1] = j - 1
    return row_to_col


def _limited(S: np.ndarray, limit: int) -> np.ndarray:
    """
    Square matrix whose perfect matchings use exactly `limit` real cells:
    n - limit dummy rows take real columns, m - limit dummy columns take real
    rows, and dummy rows never meet dummy columns.
    """
    m, n = S.shape
    size = m + n - limit
    padded = np.zeros((size, size), dtype=float)
    padded[:m, :n] = S
    padded[m:, n:] = FORBIDDEN_SCORE
    return padded


def assign_max_weight(scores: Any, limit: Optional[int] = None) -> List[Tuple[int, int]]:
    """
    Maximum-weight one-to-one assignment over an M x N score matrix.

    The matrix is padded to max(M, N) with zero-score dummies, flipped to
    costs (max - score) and solved with the Hungarian method. Pairs touching
    a dummy row/column are dropped, so the result has min(M, N) pairs for
    non-square input. Output is ordered by row index.

    With limit below min(M, N) the result is the best matching of exactly
    `limit` pairs, not a cut of the full matching.
    """
    S = _as_score_matrix(scores)
    m, n = S.shape
    if m == 0 or n == 0:
        return []
    if limit is not None and limit <= 0:
        return []

    if limit is not None and limit < min(m, n):
        padded = _limited(S, limit)
    else:
        size = max(m, n)
        padded = np.zeros((size, size), dtype=float)
        padded[:m, :n] = S
    cost = padded.max() - padded

    row_to_col = _hungarian_min(cost)
    pairs: List[Tuple[int, int]] = []
    for r in range(m):
        c = int(row_to_col[r])
        if 0 <= c < n and S[r, c] > FORBIDDEN_SCORE:
            pairs.append((r, c))
    return pairs


def assignment_total(scores: Any, pairs: Sequence[Tuple[int, int]]) -> float:
    S = _as_score_matrix(scores)
    return float(sum(S[r, c] for r, c in pairs))

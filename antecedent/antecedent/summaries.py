"""Parameter summaries and their on-disk persistence."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from .blocks import LagBlockMap
from .constants import SUMMARY_QUANTILES
from .errors import ConfigurationError, MissingParameterError
from .sampling import Draws, effective_sample_size, potential_scale_reduction


logger = logging.getLogger(__name__)

PathType = Union[str, "os.PathLike[str]"]


def quantile_label(q: float) -> str:
    return f"{100.0 * q:g}%"


LOWER, MEDIAN, UPPER = (quantile_label(q) for q in SUMMARY_QUANTILES)


def _element_names(group: str, shape: Sequence[int]) -> list[str]:
    if not shape:
        return [group]
    return [
        f"{group}[{','.join(str(i + 1) for i in idx)}]"
        for idx in np.ndindex(*shape)
    ]


@dataclass(frozen=True, eq=False)
class Summary:
    """Per-element summary statistics of one (configuration, mode) run.

    ``table`` is indexed by element name (``"weights[3]"``) and carries the
    ``group`` each element belongs to plus ``mean``, ``sd``, the quantile
    columns, ``rhat`` and ``n_eff``.
    """

    name: str
    mode: str
    n_lag: int
    n_blocks: int
    table: pd.DataFrame
    diagnostics: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.mode not in ("prior", "posterior"):
            raise ConfigurationError(f"summary mode must be 'prior' or 'posterior', got {self.mode!r}")

    @property
    def key(self) -> str:
        return f"{self.name}_{self.mode}"

    @property
    def groups(self) -> list[str]:
        return list(dict.fromkeys(self.table["group"]))

    def has_group(self, group: str) -> bool:
        return bool((self.table["group"] == group).any())

    def group(self, group: str) -> pd.DataFrame:
        """Rows of ``group`` in element order (a copy)."""

        rows = self.table[self.table["group"] == group]
        if rows.empty:
            raise MissingParameterError(
                f"summary {self.key!r} does not contain parameter group {group!r}"
            )
        return rows.drop(columns="group").copy()


def summarise_draws(
    draws: Draws,
    block_map: LagBlockMap,
    *,
    name: Optional[str] = None,
    quantiles: Iterable[float] = SUMMARY_QUANTILES,
) -> Summary:
    """Summarise every present draw group; chains are pooled only here."""

    qs = list(quantiles)
    frames = []
    for group, array in draws.groups().items():
        shape = array.shape[2:]
        flat = array.reshape(array.shape[0] * array.shape[1], -1)
        frame = pd.DataFrame(
            {
                "group": group,
                "mean": flat.mean(axis=0),
                "sd": flat.std(axis=0, ddof=1) if flat.shape[0] > 1 else np.zeros(flat.shape[1]),
            },
            index=_element_names(group, shape),
        )
        for q, values in zip(qs, np.quantile(flat, qs, axis=0)):
            frame[quantile_label(q)] = values
        frame["rhat"] = np.ravel(potential_scale_reduction(array))
        frame["n_eff"] = np.ravel(effective_sample_size(array))
        frames.append(frame)
    if not frames:
        raise MissingParameterError("draws contain no parameter groups to summarise")

    table = pd.concat(frames, axis=0)
    table.index.name = "parameter"
    return Summary(
        name=name or block_map.name,
        mode=draws.mode,
        n_lag=block_map.n_lag,
        n_blocks=block_map.n_blocks,
        table=table,
        diagnostics=dict(draws.diagnostics),
    )


def summary_path(directory: PathType, key: str) -> Path:
    return Path(directory) / f"{key}.json"


def save_summary(summary: Summary, directory: PathType) -> Path:
    """Write ``summary`` atomically as ``<name>_<mode>.json`` inside ``directory``."""

    target_dir = Path(directory)
    target_dir.mkdir(parents=True, exist_ok=True)
    payload = {
        "name": summary.name,
        "mode": summary.mode,
        "n_lag": summary.n_lag,
        "n_blocks": summary.n_blocks,
        "diagnostics": summary.diagnostics,
        "table": summary.table.reset_index().to_dict(orient="split"),
    }
    target = summary_path(target_dir, summary.key)
    fd, tmp_name = tempfile.mkstemp(dir=target_dir, prefix=f".{summary.key}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, default=float)
        os.replace(tmp_name, target)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    logger.info("Saved summary %s to %s", summary.key, target)
    return target


def load_summary(path: PathType) -> Summary:
    with open(path, "r", encoding="utf-8") as handle:
        payload = json.load(handle)
    split = payload["table"]
    table = pd.DataFrame(split["data"], columns=split["columns"]).set_index("parameter")
    return Summary(
        name=payload["name"],
        mode=payload["mode"],
        n_lag=int(payload["n_lag"]),
        n_blocks=int(payload["n_blocks"]),
        table=table,
        diagnostics=payload.get("diagnostics", {}),
    )


def load_summaries(directory: PathType) -> Dict[str, Summary]:
    """Load every persisted summary in ``directory`` keyed by ``<name>_<mode>``."""

    summaries = {}
    for path in sorted(Path(directory).glob("*.json")):
        summary = load_summary(path)
        summaries[summary.key] = summary
    return summaries


__all__ = [
    "LOWER",
    "MEDIAN",
    "Summary",
    "UPPER",
    "load_summaries",
    "load_summary",
    "quantile_label",
    "save_summary",
    "summarise_draws",
    "summary_path",
]

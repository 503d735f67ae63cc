"""
run_store.py
------------
History of analysis runs. JsonRunStore keeps the newest runs first in a
single JSON array on disk, capped at `max_runs` entries.
"""

import os
import json
from dataclasses import dataclass, asdict
from typing import Dict, List, Optional, Protocol

from stocksentix.utils import get_logger

log = get_logger(__name__)


@dataclass
class RunRecord:
    """One completed analysis as shown in the run history table."""
    date:                   str
    requested_by:           str
    stock:                  str
    correlation:            float
    model:                  str
    date_from:              str
    date_to:                str
    sample_size:            int
    run_type:               str             # correlation | csv_prediction
    prediction_label:       Optional[str]   = None
    prediction_probability: Optional[float] = None

    def to_dict(self) -> Dict:
        return asdict(self)


class ResultSink(Protocol):
    def save_run(self, record: RunRecord) -> None:
        ...


class JsonRunStore:
    """
    File-backed run history.

    Parameters
    ----------
    path : str
        JSON file location; parent folders are created on first write.
    max_runs : int
        Runs kept on disk, newest first.
    """

    def __init__(self, path: str, max_runs: int = 100):
        self.path = path
        self.max_runs = max_runs

    def _read(self) -> List[Dict]:
        if not os.path.exists(self.path):
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            log.warning("Run history %s is unreadable (%s); starting empty", self.path, exc)
            return []
        return data if isinstance(data, list) else []

    def save_run(self, record: RunRecord) -> None:
        runs = self._read()
        runs.insert(0, record.to_dict())
        parent = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(parent, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as fh:
            json.dump(runs[: self.max_runs], fh, indent=2)

    def recent_runs(self, limit: int = 20, requested_by: Optional[str] = None) -> List[Dict]:
        """Newest first; `requested_by` restricts to one user's runs."""
        runs = self._read()
        if requested_by:
            runs = [r for r in runs if r.get("requested_by") == requested_by]
        return runs[:limit]

"""Prediction results and their delimited-text export."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from types import MappingProxyType
from typing import Any, Iterator, Mapping

CSV_HEADER = "Timestamp,Predicted Level,Probabilities"


@dataclass(frozen=True)
class PredictionResult:
    """One timestamped classifier output."""

    timestamp: str
    predicted_label: int
    probabilities: Mapping[int, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Freeze a private copy so callers cannot mutate the logged result
        object.__setattr__(
            self, "probabilities", MappingProxyType(dict(self.probabilities))
        )

    @property
    def probability(self) -> float:
        return self.probabilities.get(self.predicted_label, 0.0)

    def probabilities_text(self) -> str:
        """``"2: 10.00%; 3: 85.00%; ..."`` sorted by label."""
        return "; ".join(
            f"{label}: {p * 100:.2f}%" for label, p in sorted(self.probabilities.items())
        )

    def to_row(self) -> str:
        return f"{self.timestamp},{self.predicted_label},{self.probabilities_text()}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "predicted_label": self.predicted_label,
            "probabilities": {str(k): v for k, v in sorted(self.probabilities.items())},
        }

    def __repr__(self) -> str:
        return (f"PredictionResult({self.timestamp}: label={self.predicted_label}, "
                f"p={self.probability:.2f})")


class ResultRows:
    """Iterable view of a log's export rows.

    Each iteration walks the log afresh, so the view can be consumed any
    number of times and always reflects the current contents.
    """

    def __init__(self, log: ResultLog, header: bool = True) -> None:
        self._log = log
        self._header = header

    def __iter__(self) -> Iterator[str]:
        if self._header:
            yield CSV_HEADER
        for result in list(self._log):
            yield result.to_row()


class ResultLog:
    """Append-only, insertion-ordered sequence of prediction results."""

    def __init__(self) -> None:
        self._results: list[PredictionResult] = []

    def __len__(self) -> int:
        return len(self._results)

    def __iter__(self) -> Iterator[PredictionResult]:
        return iter(self._results)

    def __getitem__(self, index: int) -> PredictionResult:
        return self._results[index]

    def __repr__(self) -> str:
        return f"ResultLog({len(self._results)} results)"

    @property
    def latest(self) -> PredictionResult | None:
        return self._results[-1] if self._results else None

    def append(self, result: PredictionResult) -> None:
        self._results.append(result)

    def rows(self, header: bool = True) -> ResultRows:
        """Delimited text rows, one per result, with an optional header row."""
        return ResultRows(self, header)

    def clear(self) -> None:
        self._results.clear()


def export_filename(day: date) -> str:
    """Default file name for a day's prediction export."""
    return f"user_StageAi_{day.isoformat()}.csv"

import csv
import math
import threading
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional


@dataclass(frozen=True)
class LatencySample:
    target_name: str
    page_index: int
    elapsed: float


@dataclass(frozen=True)
class TargetSummary:
    target_name: str
    count: int
    min_ms: float
    mean_ms: float
    p50_ms: float
    p95_ms: float
    p99_ms: float
    max_ms: float
    deepest_page: int


def percentile(sorted_values, pct):
    """Nearest-rank percentile of an already sorted sequence."""
    if not sorted_values:
        raise ValueError("percentile of an empty sequence")
    rank = max(1, math.ceil(pct / 100.0 * len(sorted_values)))
    return sorted_values[min(rank, len(sorted_values)) - 1]


class LatencyRecorder:
    """
    Append-only store of per-page latency samples, shared by every walker.

    Appends are serialized with a lock so concurrent walkers never lose a
    sample. ``sink`` (optional) is called with each sample after it is stored,
    which is how samples reach locust's own statistics.
    """

    def __init__(self, sink: Optional[Callable[[LatencySample], None]] = None):
        self.lock = threading.Lock()
        self.sink = sink
        self._samples: List[LatencySample] = []

    def record(self, target_name: str, page_index: int, elapsed: float) -> LatencySample:
        sample = LatencySample(target_name=target_name, page_index=page_index, elapsed=elapsed)
        with self.lock:
            self._samples.append(sample)
        if self.sink is not None:
            self.sink(sample)
        return sample

    def samples(self, target_name: Optional[str] = None) -> List[LatencySample]:
        with self.lock:
            if target_name is None:
                return list(self._samples)
            return [s for s in self._samples if s.target_name == target_name]

    def targets(self) -> List[str]:
        with self.lock:
            return sorted({s.target_name for s in self._samples})

    def reset(self):
        with self.lock:
            self._samples = []

    def __len__(self):
        with self.lock:
            return len(self._samples)

    def summary(self) -> Dict[str, TargetSummary]:
        by_target: Dict[str, List[LatencySample]] = {}
        for sample in self.samples():
            by_target.setdefault(sample.target_name, []).append(sample)

        result = {}
        for name in sorted(by_target):
            samples = by_target[name]
            values = sorted(s.elapsed * 1000.0 for s in samples)
            result[name] = TargetSummary(
                target_name=name,
                count=len(values),
                min_ms=values[0],
                mean_ms=sum(values) / len(values),
                p50_ms=percentile(values, 50),
                p95_ms=percentile(values, 95),
                p99_ms=percentile(values, 99),
                max_ms=values[-1],
                deepest_page=max(s.page_index for s in samples),
            )
        return result

    def write_csv(self, path) -> int:
        samples = self.samples()
        with open(path, "w", newline="", encoding="utf-8") as out:
            writer = csv.writer(out)
            writer.writerow(["target", "page", "elapsed_ms"])
            for s in samples:
                writer.writerow([s.target_name, s.page_index, f"{s.elapsed * 1000.0:.3f}"])
        return len(samples)


class OutcomeCounter:
    def __init__(self):
        self.lock = threading.Lock()
        self.counts = Counter()

    def record(self, target_name, outcome):
        with self.lock:
            self.counts[(target_name, outcome)] += 1

    def get(self, target_name, outcome):
        with self.lock:
            return self.counts.get((target_name, outcome), 0)

    def snapshot(self):
        with self.lock:
            return dict(self.counts)

    def reset(self):
        with self.lock:
            self.counts = Counter()

# File: bundlepatch/core/install/workers.py
from __future__ import annotations

"""
One worker per installation.

Each installation owns its artifacts, backups and manifest, so workers share no
mutable state and need no locking. A worker that raises only fails its own
target; the aggregated exit status is non-zero if any target aborted.
"""

from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Dict, List, Sequence, Tuple

from ..patch_engine.orchestrator import OUTCOME_ABORTED, RunReport

Job = Callable[[Path], RunReport]


def _crashed(target: Path, mode: str, exc: BaseException) -> RunReport:
    return RunReport(
        target=str(target),
        mode=mode,
        outcome=OUTCOME_ABORTED,
        trail=["aborted"],
        error=f"{type(exc).__name__}: {exc}",
    )


def run_installations(
    targets: Sequence[Path],
    job: Job,
    *,
    workers: int = 4,
    mode: str = "patch",
) -> Tuple[List[RunReport], int]:
    """
    Run `job` for every target, at most `workers` at a time. Reports come back in
    target order.
    """
    if not targets:
        return [], 0

    by_target: Dict[int, RunReport] = {}
    with ThreadPoolExecutor(max_workers=max(1, min(workers, len(targets)))) as executor:
        future_to_index = {executor.submit(job, t): i for i, t in enumerate(targets)}
        for future in as_completed(future_to_index):
            i = future_to_index[future]
            try:
                by_target[i] = future.result()
            except Exception as e:
                by_target[i] = _crashed(targets[i], mode, e)

    reports = [by_target[i] for i in range(len(targets))]
    exit_code = 0 if all(r.ok for r in reports) else 1
    return reports, exit_code


__all__ = ["Job", "run_installations"]

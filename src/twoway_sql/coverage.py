"""Branch coverage across transforms, for test tooling.

Each transform records branch outcomes in its own side-table; a
:class:`CoverageCollector` merges those tables per template. Coverage never
changes transform output.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field

from twoway_sql.nodes import BranchInfo, TemplateTree


@dataclass(frozen=True)
class BranchCoverage:
    """Coverage state of one branch."""

    node_id: int
    kind: str
    expression: str | None
    line: int
    passed: bool


@dataclass
class CoverageReport:
    """Per-branch coverage of one template."""

    name: str
    branches: list[BranchCoverage] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.branches)

    @property
    def covered(self) -> int:
        return sum(1 for b in self.branches if b.passed)

    @property
    def ratio(self) -> float:
        return self.covered / self.total if self.total else 1.0

    @property
    def summary(self) -> str:
        """One letter per branch in source order: P (taken) or F (never taken)."""
        return "".join("P" if b.passed else "F" for b in self.branches)

    def uncovered(self) -> list[BranchCoverage]:
        return [b for b in self.branches if not b.passed]

    def format(self) -> str:
        lines = [f"{self.name}: {self.covered}/{self.total} branches ({self.ratio:.0%})"]
        for b in self.branches:
            label = b.kind if b.expression is None else f"{b.kind} {b.expression}"
            lines.append(f"  [{'P' if b.passed else 'F'}] line {b.line}: {label}")
        return "\n".join(lines)


class CoverageCollector:
    """Thread-safe accumulator of branch outcomes keyed by template name."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._trees: dict[str, TemplateTree] = {}
        self._passed: dict[str, set[int]] = {}

    def record(self, name: str, tree: TemplateTree, side_table: dict[int, bool]) -> None:
        with self._lock:
            self._trees.setdefault(name, tree)
            passed = self._passed.setdefault(name, set())
            passed.update(node_id for node_id, taken in side_table.items() if taken)

    def names(self) -> list[str]:
        with self._lock:
            return sorted(self._trees)

    def report(self, name: str) -> CoverageReport:
        with self._lock:
            if name not in self._trees:
                raise KeyError(f"No coverage recorded for template '{name}'")
            tree = self._trees[name]
            passed = set(self._passed[name])
        return CoverageReport(
            name=name,
            branches=[_coverage(info, info.node_id in passed) for info in tree.branches()],
        )

    def reset(self) -> None:
        with self._lock:
            self._trees.clear()
            self._passed.clear()


def _coverage(info: BranchInfo, passed: bool) -> BranchCoverage:
    return BranchCoverage(
        node_id=info.node_id,
        kind=info.kind,
        expression=info.expression,
        line=info.line,
        passed=passed,
    )

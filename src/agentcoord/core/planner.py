"""Resource conflict planner for agent batches.

Maps a static {worker type -> profile} table onto a batch of workers and
splits the batch into phases that are pairwise conflict-free. Phases run in
sequence; workers inside one phase may run concurrently.

Two workers conflict if either profile lists the other. Worker types missing
from the table conflict with everything, so an incomplete table falls back
to sequential execution.
"""

from collections.abc import Mapping, Sequence

from ..models import AccessMode, Conflict, ParallelCheck, Recommendation, ResourceProfile

UNKNOWN_AGENT_REASON = "Unknown agent resource definition"

DEFAULT_PROFILES: dict[str, ResourceProfile] = {
    "corpus-searcher": ResourceProfile(
        access=AccessMode.READ,
        resources=("corpus-index", "corpus-entries"),
        conflicts=("corpus-enricher",),
    ),
    "corpus-enricher": ResourceProfile(
        access=AccessMode.WRITE,
        resources=("corpus-index", "corpus-entries"),
        conflicts=("corpus-searcher", "corpus-enricher"),
    ),
    "web-researcher": ResourceProfile(access=AccessMode.EXTERNAL, resources=("web-apis",)),
    "source-validator": ResourceProfile(access=AccessMode.COMPUTE),
    "session-manager": ResourceProfile(
        access=AccessMode.WRITE,
        resources=("session-state",),
        conflicts=("session-manager",),
    ),
    "frontend-planner": ResourceProfile(access=AccessMode.READ, resources=("codebase",)),
    "code-writer": ResourceProfile(
        access=AccessMode.WRITE,
        resources=("codebase",),
        conflicts=("code-writer", "quality-checker"),
    ),
    "quality-checker": ResourceProfile(
        access=AccessMode.READ,
        resources=("codebase",),
        conflicts=("code-writer",),
    ),
    "test-writer": ResourceProfile(
        access=AccessMode.WRITE,
        resources=("test-files",),
        conflicts=("test-writer",),
    ),
}


def conflict_reason(first: ResourceProfile, second: ResourceProfile) -> str:
    """Human-readable reason for a declared conflict."""
    if first.access is AccessMode.WRITE and second.access is AccessMode.WRITE:
        return "Both agents write to shared resources"
    if AccessMode.WRITE in (first.access, second.access):
        return "Write/Read conflict on shared resources"
    return "Resource access conflict"


class ResourcePlanner:
    """Stateless conflict checks over a profile table.

    Args:
        profiles: Extra or replacement profiles layered over DEFAULT_PROFILES
    """

    def __init__(self, profiles: Mapping[str, ResourceProfile] | None = None) -> None:
        self.profiles: dict[str, ResourceProfile] = {**DEFAULT_PROFILES, **(profiles or {})}

    def profile(self, worker: str) -> ResourceProfile | None:
        return self.profiles.get(worker)

    def check_pairwise(self, first: str, second: str) -> Conflict | None:
        """Return the conflict between two workers, or None if they may share a phase."""
        first_profile = self.profiles.get(first)
        second_profile = self.profiles.get(second)
        if first_profile is None or second_profile is None:
            return Conflict(first=first, second=second, reason=UNKNOWN_AGENT_REASON)

        if second in first_profile.conflicts or first in second_profile.conflicts:
            return Conflict(
                first=first,
                second=second,
                reason=conflict_reason(first_profile, second_profile),
            )
        return None

    def find_conflicts(self, workers: Sequence[str]) -> list[Conflict]:
        """All pairwise conflicts in the batch, in input order."""
        conflicts = []
        for i, first in enumerate(workers):
            for second in workers[i + 1 :]:
                conflict = self.check_pairwise(first, second)
                if conflict is not None:
                    conflicts.append(conflict)
        return conflicts

    def plan_phases(self, workers: Sequence[str]) -> list[list[str]]:
        """Greedily split the batch into conflict-free phases.

        Each pass walks the remaining workers in input order and adds every
        one that conflicts with nothing already in the phase. Not a minimum
        coloring, but deterministic and order-preserving.
        """
        phases: list[list[str]] = []
        remaining = list(workers)
        while remaining:
            phase: list[str] = []
            deferred: list[str] = []
            for worker in remaining:
                if all(self.check_pairwise(worker, placed) is None for placed in phase):
                    phase.append(worker)
                else:
                    deferred.append(worker)
            phases.append(phase)
            remaining = deferred
        return phases

    def check_parallel(self, workers: Sequence[str]) -> ParallelCheck:
        """Check whether the whole batch may run at once."""
        conflicts = self.find_conflicts(workers)
        if not conflicts:
            return ParallelCheck(
                safe=True,
                phases=[list(workers)] if workers else [],
                recommendation="parallel",
            )
        return ParallelCheck(
            safe=False,
            conflicts=conflicts,
            phases=self.plan_phases(workers),
            recommendation="sequential",
        )

    def recommend(self, workers: Sequence[str]) -> Recommendation:
        """Execution strategy with a parallelization efficiency estimate."""
        check = self.check_parallel(workers)
        if not workers:
            return Recommendation(safe=True, phases=[], efficiency=100, speedup=1.0)
        largest = max(len(phase) for phase in check.phases)
        return Recommendation(
            safe=check.safe,
            phases=check.phases,
            efficiency=round(largest / len(workers) * 100),
            speedup=round(len(workers) / len(check.phases), 2),
            conflicts=check.conflicts,
        )

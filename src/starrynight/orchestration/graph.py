"""Dependency graph over system descriptors.

All structural validation happens when the graph is built, so a bad
descriptor set fails before any system is constructed.
"""

import logging
from collections.abc import Iterable, Iterator

from starrynight.exceptions import (
    CircularDependencyError,
    DuplicateSharedServiceError,
    DuplicateSystemError,
    MissingDependencyError,
    PhaseOrderError,
)
from starrynight.models.enums import InitializationPhase, phase_index
from starrynight.orchestration.descriptor import SystemDescriptor
from starrynight.orchestration.registry import service_key

logger = logging.getLogger(__name__)


class DependencyGraph:
    """
    Validated dependency graph.

    Raises on construction:
        DuplicateSystemError: Two descriptors share a name
        DuplicateSharedServiceError: Two descriptors publish the same
            shared service key
        MissingDependencyError: A dependency names no descriptor
        CircularDependencyError: Dependencies form a cycle (reports the path)
        PhaseOrderError: With validate_phases, a dependency sits in the same
            or a later phase than its dependent
    """

    def __init__(self, descriptors: Iterable[SystemDescriptor], *, validate_phases: bool = True):
        self._descriptors: dict[str, SystemDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.name in self._descriptors:
                raise DuplicateSystemError(descriptor.name)
            self._descriptors[descriptor.name] = descriptor

        self._check_shared_services()
        self._check_missing()
        self._check_cycles()
        if validate_phases:
            self._check_phase_order()
        self._order = self._sorted_order()

        logger.debug(f"Dependency graph built: {[d.name for d in self._order]}")

    # =================================================================
    # Validation
    # =================================================================

    def _check_shared_services(self) -> None:
        owners: dict[str, str] = {}
        for descriptor in self._descriptors.values():
            if descriptor.shared_service is None:
                continue
            key = service_key(descriptor.shared_service)
            if key in owners:
                raise DuplicateSharedServiceError(key, owners[key], descriptor.name)
            owners[key] = descriptor.name

    def _check_missing(self) -> None:
        for descriptor in self._descriptors.values():
            for dependency in descriptor.dependencies:
                if dependency not in self._descriptors:
                    raise MissingDependencyError(descriptor.name, dependency)

    def _check_cycles(self) -> None:
        visited: set[str] = set()
        path: list[str] = []
        on_path: set[str] = set()

        def visit(name: str) -> None:
            path.append(name)
            on_path.add(name)
            for dependency in self._descriptors[name].dependencies:
                if dependency in on_path:
                    raise CircularDependencyError(path[path.index(dependency):] + [dependency])
                if dependency not in visited:
                    visit(dependency)
            on_path.discard(name)
            path.pop()
            visited.add(name)

        for name in self._descriptors:
            if name not in visited:
                visit(name)

    def _check_phase_order(self) -> None:
        for descriptor in self._descriptors.values():
            for dependency in descriptor.dependencies:
                target = self._descriptors[dependency]
                if phase_index(target.phase) >= phase_index(descriptor.phase):
                    raise PhaseOrderError(
                        descriptor.name, dependency, descriptor.phase.value, target.phase.value
                    )

    def _sorted_order(self) -> list[SystemDescriptor]:
        """Topological order, phase-major, registration order as tie-break."""
        position = {name: i for i, name in enumerate(self._descriptors)}
        remaining = {name: set(d.dependencies) for name, d in self._descriptors.items()}
        topo: list[str] = []
        while remaining:
            ready = sorted((n for n, deps in remaining.items() if not deps), key=position.__getitem__)
            for name in ready:
                topo.append(name)
                del remaining[name]
            for deps in remaining.values():
                deps.difference_update(ready)

        rank = {name: i for i, name in enumerate(topo)}
        return sorted(
            self._descriptors.values(),
            key=lambda d: (phase_index(d.phase), rank[d.name]),
        )

    # =================================================================
    # Queries
    # =================================================================

    def get(self, name: str) -> SystemDescriptor:
        return self._descriptors[name]

    def initialization_order(self) -> list[SystemDescriptor]:
        return list(self._order)

    def teardown_order(self) -> list[SystemDescriptor]:
        return list(reversed(self._order))

    def phase_members(self, phase: InitializationPhase) -> list[SystemDescriptor]:
        return [d for d in self._order if d.phase is phase]

    def dependencies_of(self, name: str) -> tuple[str, ...]:
        return self._descriptors[name].dependencies

    def dependents_of(self, name: str) -> list[str]:
        return [d.name for d in self._order if name in d.dependencies]

    def __contains__(self, name: object) -> bool:
        return name in self._descriptors

    def __iter__(self) -> Iterator[SystemDescriptor]:
        return iter(self._order)

    def __len__(self) -> int:
        return len(self._descriptors)

"""
System orchestration.

Public API:
    - SystemCoordinator: single entry point for the system lifecycle
    - SystemDescriptor, SystemContext: how systems are declared and constructed
    - DependencyGraph, PhaseSequencer: validation and phased initialization
    - SharedServiceRegistry, SharedService: singleton service handles
"""

from starrynight.orchestration.descriptor import (
    SystemContext,
    SystemDescriptor,
    SystemRecord,
    validate_system_contract,
)
from starrynight.orchestration.graph import DependencyGraph
from starrynight.orchestration.registry import SharedService, SharedServiceRegistry
from starrynight.orchestration.sequencer import PhaseSequencer
from starrynight.orchestration.coordinator import (
    COORDINATOR_SUBSCRIBER,
    CoordinatorMetrics,
    RefreshResult,
    SystemCoordinator,
)

__all__ = [
    "COORDINATOR_SUBSCRIBER",
    "CoordinatorMetrics",
    "DependencyGraph",
    "PhaseSequencer",
    "RefreshResult",
    "SharedService",
    "SharedServiceRegistry",
    "SystemContext",
    "SystemCoordinator",
    "SystemDescriptor",
    "SystemRecord",
    "validate_system_contract",
]

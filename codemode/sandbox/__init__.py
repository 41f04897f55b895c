"""
Sandboxed snippet execution.

Pipeline: scanner/detectors -> SourceTransformer -> ExecutionHost (Node child
process with capability bindings) -> OutcomeClassifier.
"""

from .bindings import CAPABILITY_NAMES, CapabilityBinding, CapabilityFacade, CapabilityTable
from .classifier import OutcomeClassifier, classify
from .engine import SandboxEngine, execute, execute_async
from .host import ExecutionHost
from .scanner import Region, RegionKind, sanitize, scan
from .transformer import SourceTransformer, transform
from .types import ExecutionRequest, ExecutionResult, FailureKind

__all__ = [
    "CAPABILITY_NAMES",
    "CapabilityBinding",
    "CapabilityFacade",
    "CapabilityTable",
    "ExecutionHost",
    "ExecutionRequest",
    "ExecutionResult",
    "FailureKind",
    "OutcomeClassifier",
    "Region",
    "RegionKind",
    "SandboxEngine",
    "SourceTransformer",
    "classify",
    "execute",
    "execute_async",
    "sanitize",
    "scan",
    "transform",
]

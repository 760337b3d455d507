"""ANN index lifecycle components."""

from .backends import CancellationToken, FaissBackend, LinearScanBackend, default_chain
from .handle import IndexHandle
from .manager import IndexManager

__all__ = [
    "CancellationToken",
    "FaissBackend",
    "LinearScanBackend",
    "IndexHandle",
    "IndexManager",
    "default_chain",
]

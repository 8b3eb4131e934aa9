"""ArxPool - encrypted contribution pools with signed, checksummed tallies."""

from __future__ import annotations

from importlib import import_module
from typing import Any, TYPE_CHECKING

__version__ = "0.3.0"

__all__ = [
    "ArxPoolClient",
    "ArxPoolConfig",
    "ArxPoolError",
    "CiphertextRecord",
    "ComputeOrchestrator",
    "HttpJobExecutor",
    "Pool",
    "PoolLedger",
    "ResultVerifier",
    "SignedResult",
    "TallyRecord",
    "canonicalize",
    "configure",
    "derive_keypair",
    "serialize",
    "verify_result",
]

if TYPE_CHECKING:
    from .canonical import canonicalize, serialize
    from .client import ArxPoolClient
    from .compute import ComputeOrchestrator
    from .config import ArxPoolConfig, configure
    from .crypto import derive_keypair
    from .errors import ArxPoolError
    from .executor import HttpJobExecutor
    from .ledger import PoolLedger
    from .models import CiphertextRecord, Pool, SignedResult, TallyRecord
    from .verify import ResultVerifier, verify_result


def __getattr__(name: str) -> Any:
    """Lazily import submodules so ``import arxpool`` stays cheap."""

    module_map = {
        "ArxPoolClient": "client",
        "ArxPoolConfig": "config",
        "ArxPoolError": "errors",
        "CiphertextRecord": "models",
        "ComputeOrchestrator": "compute",
        "HttpJobExecutor": "executor",
        "Pool": "models",
        "PoolLedger": "ledger",
        "ResultVerifier": "verify",
        "SignedResult": "models",
        "TallyRecord": "models",
        "canonicalize": "canonical",
        "configure": "config",
        "derive_keypair": "crypto",
        "serialize": "canonical",
        "verify_result": "verify",
    }

    if name not in module_map:
        raise AttributeError(name)

    module = import_module(f".{module_map[name]}", __name__)
    return getattr(module, name)

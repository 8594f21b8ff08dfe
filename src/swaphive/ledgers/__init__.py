"""Ledger gateways.

- HiveLedger: HIVE on the Hive blockchain (primary ledger)
- HiveEngineLedger: SWAP.HIVE on the Hive Engine side chain (side ledger)
- SimulatedLedger: in-memory stand-in for dry runs and tests
"""

from swaphive.ledgers.base import LedgerGateway, LedgerTransfer
from swaphive.ledgers.engine import HiveEngineLedger
from swaphive.ledgers.hive import HiveLedger
from swaphive.ledgers.rpc import JsonRpcClient, RPCResponseError
from swaphive.ledgers.simulated import SimulatedLedger

__all__ = [
    "LedgerGateway",
    "LedgerTransfer",
    "HiveLedger",
    "HiveEngineLedger",
    "JsonRpcClient",
    "RPCResponseError",
    "SimulatedLedger",
]

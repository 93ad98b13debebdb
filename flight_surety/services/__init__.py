"""
Ledger services for the flight surety system.

This module contains the components wired together by FlightSuretyLedger:
identity, operational gate, airline consensus, flight registry, insurance
ledger, oracle consensus, entity locking, payments and the oracle simulator.
"""

from .identity import IdentityRegistry
from .operational_gate import OperationalGate
from .lock_manager import EntityLockManager, LockScope, LockInfo, LockContentionMetrics, build_lock_key
from .airline_consensus import AirlineConsensusEngine, consensus_threshold
from .insurance_ledger import InsuranceLedger
from .flight_registry import FlightRegistry, derive_request_index
from .oracle_consensus import OracleConsensusEngine, IndexGenerator, parse_status_code
from .oracle_simulator import OracleSimulator, OracleSimulationMetrics
from .payments import PaymentGateway, InMemoryPaymentGateway, PaymentError

__all__ = [
    'IdentityRegistry',
    'OperationalGate',
    'EntityLockManager',
    'LockScope',
    'LockInfo',
    'LockContentionMetrics',
    'build_lock_key',
    'AirlineConsensusEngine',
    'consensus_threshold',
    'InsuranceLedger',
    'FlightRegistry',
    'derive_request_index',
    'OracleConsensusEngine',
    'IndexGenerator',
    'parse_status_code',
    'OracleSimulator',
    'OracleSimulationMetrics',
    'PaymentGateway',
    'InMemoryPaymentGateway',
    'PaymentError',
]

"""
Tests for flight registration, fused insurance purchase and status requests.
"""

from decimal import Decimal

import pytest

from flight_surety.errors import (
    AirlineNotFunded,
    FlightAlreadyExists,
    FlightNotFound,
    InvalidFlight,
    PremiumExceedsCap,
    error_category,
)
from flight_surety.ledger import FlightSuretyLedger
from flight_surety.models import (
    FlightKey,
    FlightRegistered,
    FlightStatusCode,
    InsurancePurchased,
    StatusRequested,
    make_account,
)
from flight_surety.services.flight_registry import derive_request_index
from flight_surety.utils.config import SuretyConfig


OWNER = make_account(1)
GENESIS = make_account(10)
SECOND = make_account(11)
PASSENGER = make_account(100)


@pytest.fixture
def ledger():
    """Ledger with a funded genesis airline and a registered, unfunded second airline."""
    ledger = FlightSuretyLedger(OWNER, GENESIS, config=SuretyConfig())
    ledger.fund_airline(GENESIS, 10)
    ledger.register_airline(SECOND, GENESIS)
    return ledger


@pytest.fixture
def facts(ledger):
    received = []
    ledger.subscribe(received.append)
    return received


class TestRegisterFlight:
    """Test flight registration."""

    def test_register_without_premium(self, ledger, facts):
        key = ledger.register_flight(GENESIS, "SA100", 1000, PASSENGER)

        flight = ledger.get_flight(key)
        assert flight.status_code == FlightStatusCode.UNKNOWN
        assert flight.registered_by == PASSENGER
        assert ledger.policies_for_flight(key) == []
        assert [type(fact) for fact in facts] == [FlightRegistered]
        assert ledger.treasury_balance() == Decimal("10")

    def test_register_with_premium_insures_caller(self, ledger, facts):
        key = ledger.register_flight(GENESIS, "SA100", 1000, PASSENGER, premium=Decimal("0.5"))

        policy = ledger.get_policy(PASSENGER, key)
        assert policy.premium == Decimal("0.5")
        assert ledger.treasury_balance() == Decimal("10.5")
        assert [type(fact) for fact in facts] == [FlightRegistered, InsurancePurchased]

    def test_unfunded_airline(self, ledger):
        with pytest.raises(AirlineNotFunded):
            ledger.register_flight(SECOND, "SA100", 1000, PASSENGER)
        with pytest.raises(AirlineNotFunded):
            ledger.register_flight(make_account(99), "SA100", 1000, PASSENGER)
        assert ledger.list_flights() == []

    def test_duplicate_flight(self, ledger):
        ledger.register_flight(GENESIS, "SA100", 1000, PASSENGER)
        with pytest.raises(FlightAlreadyExists):
            ledger.register_flight(GENESIS, "SA100", 1000, make_account(101))
        # Same code at a different time is a different flight
        ledger.register_flight(GENESIS, "SA100", 2000, PASSENGER)
        assert len(ledger.list_flights()) == 2

    def test_premium_above_cap_leaves_no_flight(self, ledger, facts):
        with pytest.raises(PremiumExceedsCap):
            ledger.register_flight(GENESIS, "SA100", 1000, PASSENGER, premium="1.01")

        assert ledger.get_flight(ledger.flight_key(GENESIS, "SA100", 1000)) is None
        assert ledger.treasury_balance() == Decimal("10")
        assert facts == []

    def test_list_flights_by_airline(self, ledger):
        ledger.fund_airline(SECOND, 10)
        ledger.register_flight(GENESIS, "SA100", 1000, PASSENGER)
        ledger.register_flight(SECOND, "SB200", 1000, PASSENGER)

        assert [flight.code for flight in ledger.list_flights(SECOND)] == ["SB200"]
        assert len(ledger.list_flights()) == 2

    def test_get_flight_returns_copy(self, ledger):
        key = ledger.register_flight(GENESIS, "SA100", 1000, PASSENGER)
        ledger.get_flight(key).status_code = FlightStatusCode.LATE_AIRLINE
        assert ledger.flight_status(key) == FlightStatusCode.UNKNOWN


class TestFetchFlightStatus:
    """Test oracle status requests."""

    def test_unknown_flight(self, ledger):
        with pytest.raises(FlightNotFound):
            ledger.fetch_flight_status(GENESIS, "SA999", 1000, PASSENGER)

    def test_fetch_emits_status_requested(self, ledger, facts):
        key = ledger.register_flight(GENESIS, "SA100", 1000, PASSENGER)
        request_id = ledger.fetch_flight_status(GENESIS, "SA100", 1000, PASSENGER)

        request = facts[-1]
        assert isinstance(request, StatusRequested)
        assert request.request_id == request_id == 1
        assert (request.airline, request.code, request.timestamp) == (key.airline, key.code, key.timestamp)
        assert 0 <= request.index < 10
        assert request.index == derive_request_index("flight-surety", key, 1, 10)

    def test_new_requests_take_increasing_ids(self, ledger, facts):
        ledger.register_flight(GENESIS, "SA100", 1000, PASSENGER)
        returned = [ledger.fetch_flight_status(GENESIS, "SA100", 1000, PASSENGER) for _ in range(20)]
        requests = [fact for fact in facts if isinstance(fact, StatusRequested)]

        assert returned == [request.request_id for request in requests]
        first_ids = []
        for request in requests:
            if request.request_id not in first_ids:
                first_ids.append(request.request_id)
        assert first_ids == sorted(first_ids)
        assert first_ids[0] == 1

    def test_refetch_returns_open_request_id(self, ledger, facts):
        key = ledger.register_flight(GENESIS, "SA100", 1000, PASSENGER)
        opened = {}
        for _ in range(100):
            request_id = ledger.fetch_flight_status(GENESIS, "SA100", 1000, PASSENGER)
            index = facts[-1].index
            if index in opened:
                break
            opened[index] = request_id

        # The derived index repeated: the fact and return value name the open request
        assert index in opened
        assert request_id == opened[index]
        assert facts[-1].request_id == opened[index]
        assert ledger.state.requests[(index, key)].request_id == opened[index]

    def test_index_derivation_is_deterministic(self):
        key = FlightKey(airline=GENESIS, code="SA100", timestamp=1000)
        indexes = [derive_request_index("seed", key, counter, 10) for counter in range(50)]
        assert indexes == [derive_request_index("seed", key, counter, 10) for counter in range(50)]
        assert all(0 <= index < 10 for index in indexes)
        assert len(set(indexes)) > 1


class TestInvalidFlightInput:
    """Out-of-range flight codes and departure times are validation errors."""

    @pytest.mark.parametrize("code, timestamp", [
        ("", 1000),
        ("X" * 17, 1000),
        ("SA100", -1),
        ("SA100", 1.5),
        ("SA100", "tomorrow"),
    ])
    def test_register_flight(self, ledger, facts, code, timestamp):
        with pytest.raises(InvalidFlight) as error:
            ledger.register_flight(GENESIS, code, timestamp, PASSENGER, premium=1)

        assert error_category(error.value) == "validation"
        assert isinstance(error.value, ValueError)
        assert ledger.list_flights() == []
        assert ledger.treasury_balance() == Decimal("10")
        assert facts == []

    @pytest.mark.parametrize("code, timestamp", [("", 1000), ("X" * 17, 1000), ("SA100", -1)])
    def test_fetch_flight_status(self, ledger, facts, code, timestamp):
        with pytest.raises(InvalidFlight):
            ledger.fetch_flight_status(GENESIS, code, timestamp, PASSENGER)
        assert facts == []

    def test_flight_key_lookup(self, ledger):
        with pytest.raises(InvalidFlight):
            ledger.flight_key(GENESIS, "", 1000)

    def test_longest_code_is_accepted(self, ledger):
        key = ledger.register_flight(GENESIS, "X" * 16, 0, PASSENGER)
        assert ledger.get_flight(key).code == "X" * 16

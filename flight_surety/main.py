"""
Command line entry point for the flight surety ledger.

Commands:
- demo: seeds owner, airlines and passengers, runs a full insurance cycle
  against simulated oracles and prints the resulting ledger
- config: prints the effective configuration
"""

import logging
from typing import List, Optional

import typer
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from .errors import FlightSuretyError
from .ledger import FlightSuretyLedger, create_ledger
from .models.account import make_account
from .models.enums import AirlineStatus, FlightStatusCode
from .models.events import LedgerEvent
from .models.flight import FlightKey
from .services.oracle_consensus import parse_status_code
from .services.oracle_simulator import OracleSimulator
from .utils.config import SuretyConfig, get_config

# Initialize typer app and rich console
app = typer.Typer(help="Flight Surety: airline flight delay insurance ledger")
console = Console()

AIRLINE_COUNT = 5
PASSENGER_COUNT = 5
# 2026-01-01T00:00:00Z
FIRST_DEPARTURE = 1767225600
MAX_STATUS_FETCHES = 5


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def print_section(title: str):
    console.print()
    console.rule(f"[bold cyan]{title}[/bold cyan]")


def seed_airlines(ledger: FlightSuretyLedger, airlines: List[str]) -> None:
    """Fund the genesis airline, then register and fund the others."""
    stake = ledger.config.airline_funding_minimum
    genesis = airlines[0]
    ledger.fund_airline(genesis, stake)

    for candidate in airlines[1:]:
        voters = [a for a in airlines if ledger.is_airline_funded(a)]
        for voter in voters:
            if ledger.register_airline(candidate, voter) == AirlineStatus.REGISTERED:
                break
        ledger.fund_airline(candidate, stake)


def resolve_flight(ledger: FlightSuretyLedger, key: FlightKey, caller: str) -> int:
    """Fetch a flight's status until oracles reach quorum; returns fetches made."""
    fetches = 0
    while fetches < MAX_STATUS_FETCHES and ledger.flight_status(key) == FlightStatusCode.UNKNOWN:
        ledger.fetch_flight_status(key.airline, key.code, key.timestamp, caller)
        fetches += 1
    return fetches


def create_airlines_table(ledger: FlightSuretyLedger, airlines: List[str]) -> Table:
    table = Table(title="Airlines", box=box.ROUNDED)
    table.add_column("Account", style="cyan")
    table.add_column("Status", style="white")
    table.add_column("Stake", justify="right")

    for account in airlines:
        airline = ledger.get_airline(account)
        status = airline.status.value if airline else "unregistered"
        stake = str(airline.funded_amount) if airline else "0"
        table.add_row(account, status, stake)
    return table


def create_flights_table(ledger: FlightSuretyLedger) -> Table:
    table = Table(title="Flights", box=box.ROUNDED)
    table.add_column("Flight", style="cyan")
    table.add_column("Airline")
    table.add_column("Departure", justify="right")
    table.add_column("Status")
    table.add_column("Policies", justify="right")

    for flight in ledger.list_flights():
        status = flight.status_code
        style = "red" if status == FlightStatusCode.LATE_AIRLINE else "green"
        if status == FlightStatusCode.UNKNOWN:
            style = "yellow"
        table.add_row(
            flight.code,
            flight.airline,
            str(flight.timestamp),
            f"[{style}]{status.name}[/{style}]",
            str(len(ledger.policies_for_flight(flight.key))),
        )
    return table


def create_balances_table(ledger: FlightSuretyLedger, passengers: List[str], withdrawn: dict) -> Table:
    table = Table(title="Passengers", box=box.ROUNDED)
    table.add_column("Account", style="cyan")
    table.add_column("Credited", justify="right")
    table.add_column("Withdrawn", justify="right")

    for passenger in passengers:
        table.add_row(passenger, str(ledger.insuree_balance(passenger)), str(withdrawn.get(passenger, 0)))
    return table


def create_facts_table(facts: List[LedgerEvent]) -> Table:
    table = Table(title="Facts", box=box.ROUNDED, show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Fact", style="magenta")
    table.add_column("Details")

    for number, fact in enumerate(facts, start=1):
        details = fact.model_dump(exclude={"event_type", "occurred_at"}, mode="json")
        table.add_row(str(number), fact.event_type, ", ".join(f"{k}={v}" for k, v in details.items()))
    return table


def create_config_table(config: SuretyConfig) -> Table:
    table = Table(title="Configuration", box=box.ROUNDED, show_header=False)
    table.add_column("Setting", style="cyan bold")
    table.add_column("Value", style="white")
    for name, value in config.model_dump().items():
        table.add_row(name, str(value))
    return table


def run_demo(
    config: SuretyConfig,
    oracle_count: int,
    status: Optional[FlightStatusCode],
    premium: float,
    publish: bool,
    seed: int = 42,
) -> FlightSuretyLedger:
    """
    Run one insurance cycle end to end.

    Args:
        config: Ledger configuration
        oracle_count: Number of simulated oracles
        status: Status every oracle reports; random when None
        premium: Premium each passenger pays on registration
        publish: Publish facts to Valkey
        seed: Seed for random oracle answers

    Returns:
        FlightSuretyLedger: The ledger after the cycle
    """
    owner = make_account(1)
    airlines = [make_account(10 + i) for i in range(AIRLINE_COUNT)]
    passengers = [make_account(100 + i) for i in range(PASSENGER_COUNT)]

    ledger = create_ledger(owner, airlines[0], config=config, publish_events=publish)
    facts: List[LedgerEvent] = []
    ledger.subscribe(facts.append)

    print_section("AIRLINES")
    seed_airlines(ledger, airlines)
    console.print(f"[green]✓[/green] {ledger.registered_airline_count()} airlines registered and funded")

    print_section("FLIGHTS AND INSURANCE")
    keys: List[FlightKey] = []
    for number, passenger in enumerate(passengers):
        airline = airlines[number % len(airlines)]
        key = ledger.register_flight(
            airline, f"SA{100 + number}", FIRST_DEPARTURE + number * 3600, passenger, premium=premium
        )
        keys.append(key)
    console.print(f"[green]✓[/green] {len(keys)} flights registered with premium {premium}")

    print_section("ORACLES")
    simulator = OracleSimulator(ledger, oracle_count=oracle_count, status=status, seed=seed)
    with simulator:
        for key, passenger in zip(keys, passengers):
            resolve_flight(ledger, key, passenger)
    console.print(f"[green]✓[/green] Oracle responses: {simulator.metrics.to_dict()}")

    print_section("WITHDRAWALS")
    withdrawn = {}
    for passenger in passengers:
        amount = ledger.make_withdrawal(passenger)
        if amount > 0:
            withdrawn[passenger] = amount
    console.print(f"[green]✓[/green] {len(withdrawn)} passengers withdrew their payout")

    console.print(create_airlines_table(ledger, airlines))
    console.print(create_flights_table(ledger))
    console.print(create_balances_table(ledger, passengers, withdrawn))
    console.print(create_facts_table(facts))
    console.print(Panel.fit(
        f"[bold]Treasury:[/bold] {ledger.treasury_balance()}\n"
        f"[bold]Facts:[/bold] {len(facts)}",
        border_style="cyan",
    ))
    return ledger


@app.command()
def demo(
    oracles: int = typer.Option(
        20,
        "--oracles",
        "-o",
        help="Number of simulated oracles (1-200)"
    ),
    status: Optional[int] = typer.Option(
        None,
        "--status",
        "-s",
        help="Status code every oracle reports (random when omitted)"
    ),
    premium: float = typer.Option(
        1.0,
        "--premium",
        "-p",
        help="Premium each passenger pays"
    ),
    publish: bool = typer.Option(
        False,
        "--publish",
        help="Publish ledger facts to Valkey"
    ),
    seed: int = typer.Option(
        42,
        "--seed",
        help="Seed for random oracle answers"
    ),
):
    """Run a full insurance cycle against simulated oracles"""
    try:
        config = get_config()
    except ValueError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(code=1)

    setup_logging(config.log_level)

    if oracles < 1 or oracles > 200:
        console.print(f"[red]❌ Number of oracles must be between 1 and 200. Got: {oracles}[/red]")
        raise typer.Exit(code=1)

    status_code = None
    if status is not None:
        try:
            status_code = parse_status_code(status)
        except FlightSuretyError as e:
            console.print(f"[red]❌ {e.message}[/red]")
            raise typer.Exit(code=1)

    console.print(Panel.fit(
        "[bold cyan]FLIGHT SURETY DEMO[/bold cyan]\n"
        "[yellow]Airline consensus, insurance and oracle settlement[/yellow]",
        border_style="cyan",
        box=box.DOUBLE
    ))

    try:
        run_demo(config, oracles, status_code, premium, publish, seed)
    except FlightSuretyError as e:
        console.print(f"[red]❌ {type(e).__name__} ({e.category}): {e.message}[/red]")
        raise typer.Exit(code=1)


@app.command("config")
def show_config():
    """Print the effective configuration"""
    try:
        config = get_config()
    except ValueError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(code=1)
    console.print(create_config_table(config))


def main() -> int:
    """Main entry point for the flight surety CLI."""
    app()
    return 0


if __name__ == "__main__":
    exit(main())

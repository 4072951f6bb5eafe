"""
Sample Ledger Data

The example people shown on a fresh install, and the fallback used
when a shared link points at one of them but the store has no record.

NOTE: Only names and transactions are listed here. Totals are always
computed by the aggregator, never copied.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from loan_tracker.ledger.aggregator import apply_totals
from loan_tracker.models.ledger import Person, Transaction, TransactionKind


LOAN = TransactionKind.LOAN
PAYMENT = TransactionKind.PAYMENT

SAMPLE_CREATED_AT = datetime(2023, 11, 1, tzinfo=timezone.utc)

SAMPLE_NAMES: dict[str, str] = {
    "1": "Carlos Rodríguez",
    "2": "María González",
    "3": "Juan Pérez",
    "4": "Jose Castillo",
    "5": "Barbara",
    "6": "Jose",
    "7": "Keiber",
    "8": "Pedro",
}

# person id -> [(transaction id, kind, amount, "YYYY-MM-DD", description)]
_SAMPLE_ROWS: dict[str, list[tuple[str, TransactionKind, int, str, str]]] = {
    "1": [
        ("101", LOAN, 100000, "2023-12-15", "Préstamo para reparación de auto"),
        ("102", LOAN, 50000, "2024-01-20", "Préstamo para gastos médicos"),
        ("103", PAYMENT, 50000, "2024-02-10", "Primer pago"),
    ],
    "2": [
        ("201", LOAN, 75000, "2023-11-05", "Préstamo para compra de laptop"),
        ("202", PAYMENT, 25000, "2023-12-05", "Primer pago"),
        ("203", PAYMENT, 25000, "2024-01-05", "Segundo pago"),
        ("204", PAYMENT, 25000, "2024-02-05", "Pago final"),
    ],
    "3": [
        ("301", LOAN, 200000, "2024-01-10", "Préstamo para matrícula universitaria"),
        ("302", PAYMENT, 50000, "2024-02-10", "Primer pago"),
    ],
    "4": [
        ("401", LOAN, 49646, "2023-12-01", "Monto de la Cuota"),
        ("402", LOAN, 49646, "2024-01-01", "Monto de la Cuota"),
        ("403", LOAN, 49646, "2024-02-01", "Monto de la Cuota"),
        ("404", LOAN, 49646, "2024-03-01", "Monto de la Cuota"),
        ("405", LOAN, 49646, "2024-04-01", "Monto de la Cuota"),
        ("406", LOAN, 49646, "2024-05-01", "Monto de la Cuota"),
        ("407", LOAN, 49646, "2024-06-01", "Monto de la Cuota"),
        ("408", LOAN, 49646, "2024-07-01", "Monto de la Cuota"),
        ("409", LOAN, 49646, "2024-08-01", "Monto de la Cuota"),
        ("410", LOAN, 100000, "2024-09-01", "Pidio 100 prestado"),
        ("411", PAYMENT, 49646, "2023-12-15", "Pago"),
        ("412", PAYMENT, 49646, "2025-01-05", "Pago 05/01/2025"),
        ("413", PAYMENT, 49646, "2025-02-06", "Pago 06/02/2025"),
        ("414", PAYMENT, 49646, "2025-03-06", "Pago 06/03/2025"),
    ],
    "5": [
        ("501", LOAN, 30000, "2024-03-15", "Préstamo personal"),
    ],
    "6": [
        ("601", LOAN, 381480, "2024-03-20", "Préstamo personal"),
    ],
    "7": [
        ("701", LOAN, 30000, "2024-03-01", "Préstamo personal"),
        ("702", LOAN, 130000, "2024-03-10", "Préstamo para televisor"),
        ("703", LOAN, 118222, "2024-03-15", "Préstamo para mouse"),
    ],
    "8": [
        ("801", LOAN, 240000, "2024-03-01", "Préstamo para moto - 6 cuotas de $40.000"),
        ("802", PAYMENT, 40000, "2024-04-01", "Cuota 1/6"),
        ("803", PAYMENT, 40000, "2024-05-01", "Cuota 2/6 (Programada)"),
        ("804", PAYMENT, 40000, "2024-06-01", "Cuota 3/6 (Programada)"),
        ("805", PAYMENT, 40000, "2024-07-01", "Cuota 4/6 (Programada)"),
        ("806", PAYMENT, 40000, "2024-08-01", "Cuota 5/6 (Programada)"),
        ("807", PAYMENT, 40000, "2024-09-01", "Cuota 6/6 (Programada)"),
    ],
}


def sample_transactions(person_id: str) -> list[Transaction]:
    """Example transactions of one sample person; empty for unknown ids."""
    return [
        Transaction(
            id=transaction_id,
            kind=kind,
            amount=Decimal(amount),
            date=datetime.fromisoformat(day).replace(tzinfo=timezone.utc),
            description=description,
        )
        for transaction_id, kind, amount, day, description
        in _SAMPLE_ROWS.get(person_id, [])
    ]


def sample_person(person_id: str) -> Optional[Person]:
    """Example person with totals derived from its transactions."""
    name = SAMPLE_NAMES.get(person_id)
    if name is None:
        return None

    person = Person(id=person_id, name=name, created_at=SAMPLE_CREATED_AT)
    return apply_totals(person, sample_transactions(person_id))


def sample_people() -> list[Person]:
    """Every example person, in display order."""
    return [sample_person(person_id) for person_id in SAMPLE_NAMES]

"""Example usage of ShapeDiff comparison engine."""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from shapediff import (
    ComparisonProfile,
    DateTimeToleranceComparator,
    EngineConfig,
    FieldMappingComparator,
    ShapeDiffEngine,
    compare_field,
)


# Reference graph: the shape produced by the legacy service

class Status(Enum):
    ACTIVE = 1
    CLOSED = 2


@dataclass
class LegacyDiscount:
    Total: Decimal


@dataclass
class LegacyPrice:
    Total: Decimal
    AfterDiscount: Optional[LegacyDiscount] = None


@dataclass
class LegacyPeriod:
    uuid: str
    Start: datetime
    Nights: int
    IsFromCache: bool = False


@dataclass
class LegacyOffer:
    Id: str
    Status: Status
    Price: LegacyPrice
    Periods: list[LegacyPeriod] = compare_field(identity_key="uuid", default_factory=list)
    Tags: list[str] = field(default_factory=list)


# Candidate graph: the shape produced by the new service

@dataclass
class Discount:
    AfterTax: Decimal


@dataclass
class Price:
    Total: float
    AfterDiscount: Optional[Discount] = None


@dataclass
class Period:
    uuid: str
    Start: datetime
    Nights: int
    IsFromCache: bool = False


@dataclass
class Offer:
    Id: str
    Status: str
    Price: Price
    Periods: list[Period] = field(default_factory=list)
    Tags: list[str] = field(default_factory=list)
    Channel: Optional[str] = None


reference = LegacyOffer(
    Id="OFF-001",
    Status=Status.ACTIVE,
    Price=LegacyPrice(Total=Decimal("100.00"), AfterDiscount=LegacyDiscount(Total=Decimal("90.00"))),
    Periods=[
        LegacyPeriod(uuid="p-1", Start=datetime(2025, 2, 2, 10, 30), Nights=3, IsFromCache=True),
        LegacyPeriod(uuid="p-2", Start=datetime(2025, 3, 1, 12, 0), Nights=2),
    ],
    Tags=["family", "sea-view"],
)

candidate = Offer(
    Id="OFF-001",
    Status="ACTIVE",  # Enum name on one side, plain text on the other
    Price=Price(Total=100.0, AfterDiscount=Discount(AfterTax=Decimal("85.00"))),
    Periods=[
        # Same periods, different order: matched by uuid
        Period(uuid="p-2", Start=datetime(2025, 3, 1, 12, 0, 2), Nights=2),
        Period(uuid="p-1", Start=datetime(2025, 2, 2, 10, 30), Nights=4),
    ],
    Tags=["sea-view", "family"],  # Positional: reported
    Channel=None,  # Candidate-only field with an empty value: not reported
)

profile = (
    ComparisonProfile()
    .exclude("Periods.IsFromCache")
    .add_rule(
        LegacyPrice,
        FieldMappingComparator({
            "Total": "Total",
            "AfterDiscount.Total": "AfterDiscount.AfterTax",
        })
    )
    .describe(LegacyPeriod, "Start", comparator=DateTimeToleranceComparator("5s"))
)


def main():
    logging.basicConfig(level=logging.WARNING)

    engine = ShapeDiffEngine(profile, EngineConfig(trace_rule_application=True))
    is_match, differences = engine.compare(reference, candidate)

    print("=" * 60)
    print("ShapeDiff Comparison Result")
    print("=" * 60)
    print(f"\nMatch: {is_match}")
    print(f"Differences: {len(differences)}")

    if differences:
        print("\nDifferences Found:")
        for diff in differences:
            print(f"  - {diff}")

    # Same periods in another order, with the mismatching fields fixed
    candidate.Periods = [
        Period(uuid="p-2", Start=datetime(2025, 3, 1, 12, 0, 2), Nights=2),
        Period(uuid="p-1", Start=datetime(2025, 2, 2, 10, 30), Nights=3),
    ]
    candidate.Tags = ["family", "sea-view"]
    candidate.Price.AfterDiscount = Discount(AfterTax=Decimal("90.00"))

    result = engine.compare(reference, candidate)
    print(f"\nAfter fixes - Match: {result.is_match}")

    print("\nFull Result (JSON):")
    print(json.dumps(result.to_dict(), indent=2))


if __name__ == "__main__":
    main()

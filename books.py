from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal


@dataclass(frozen=True)
class Book:
    name: str
    price: Decimal
    page_count: int
    url: str

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError("Book name must not be empty.")
        if self.price <= 0:
            raise ValueError(f"Book price must be positive, got {self.price}.")
        if self.page_count <= 0:
            raise ValueError(f"Book page count must be positive, got {self.page_count}.")

    @property
    def price_per_page(self) -> Decimal:
        return self.price / self.page_count

    def to_dict(self) -> dict[str, str | int]:
        data = asdict(self)
        data["price"] = str(self.price)
        data["price_per_page"] = f"{self.price_per_page:.2f}"
        return data

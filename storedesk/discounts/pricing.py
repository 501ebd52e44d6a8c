"""Per-product discount pricing and batch edits over a working selection.

A line's discounted price and its percentage off are one quantity seen two
ways. Only the price is stored; the percentage is derived from it on read and
converted into a price on write. Order of rounding matters for fixtures:
price = round2(original * (1 - pct/100)) first, then the displayed
pct = round2((original - price) / original * 100).
"""
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple, Union

from .model import ApplicableProduct, LimitMode, Product
from ..common.errors import ValidationFailed

_logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
HUNDRED = Decimal("100")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(str(value).strip() or "0")


def round2(value: Number) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def price_from_percentage(original_price: Number, percentage: Number) -> Decimal:
    original = to_decimal(original_price)
    return round2(original * (1 - to_decimal(percentage) / HUNDRED))


def percentage_from_price(original_price: Number, discounted_price: Number) -> Decimal:
    original = to_decimal(original_price)
    if original == 0:
        return Decimal("0.00")
    return round2((original - to_decimal(discounted_price)) / original * HUNDRED)


class PricedLine:
    """Editable discount projection of one product."""

    def __init__(
        self,
        product_id: str,
        name: str,
        original_price: Number,
        current_stock: int = 0,
        discounted_price: Optional[Number] = None,
        stock_limit: Optional[int] = None,
        purchase_limit: Optional[int] = None,
        has_no_stock_limit: Optional[bool] = None,
        has_no_purchase_limit: Optional[bool] = None,
    ):
        self.product_id = product_id
        self.name = name
        self.original_price = round2(original_price)
        self.current_stock = int(current_stock or 0)
        self._discounted_price = self.original_price if discounted_price is None else round2(discounted_price)
        self.stock_limit = stock_limit
        self.purchase_limit = purchase_limit
        self.has_no_stock_limit = stock_limit is None if has_no_stock_limit is None else has_no_stock_limit
        self.has_no_purchase_limit = purchase_limit is None if has_no_purchase_limit is None else has_no_purchase_limit

    @classmethod
    def from_product(cls, product: Product, entry: Optional[ApplicableProduct] = None) -> "PricedLine":
        if entry is None:
            return cls(product.id, product.name, product.price, product.current_stock)
        return cls(
            product.id,
            product.name,
            product.price,
            product.current_stock,
            discounted_price=entry.discounted_price,
            stock_limit=entry.stock_limit,
            purchase_limit=entry.purchase_limit,
        )

    @property
    def discounted_price(self) -> Decimal:
        return self._discounted_price

    @discounted_price.setter
    def discounted_price(self, value: Number) -> None:
        self._discounted_price = round2(value)

    @property
    def discount_percentage(self) -> Decimal:
        return percentage_from_price(self.original_price, self._discounted_price)

    @discount_percentage.setter
    def discount_percentage(self, value: Number) -> None:
        self._discounted_price = price_from_percentage(self.original_price, value)

    def set_stock_limit_enabled(self, enabled: bool) -> None:
        self.has_no_stock_limit = not enabled
        self.stock_limit = (self.stock_limit or 1) if enabled else None

    def set_purchase_limit_enabled(self, enabled: bool) -> None:
        self.has_no_purchase_limit = not enabled
        self.purchase_limit = (self.purchase_limit or 1) if enabled else None

    def copy(self) -> "PricedLine":
        return PricedLine(
            self.product_id,
            self.name,
            self.original_price,
            self.current_stock,
            discounted_price=self._discounted_price,
            stock_limit=self.stock_limit,
            purchase_limit=self.purchase_limit,
            has_no_stock_limit=self.has_no_stock_limit,
            has_no_purchase_limit=self.has_no_purchase_limit,
        )

    def to_entry(self) -> Dict:
        return {
            "product_id": self.product_id,
            "discounted_price": float(self._discounted_price),
            "stock_limit": self.stock_limit,
            "purchase_limit": self.purchase_limit,
        }

    def to_dict(self) -> Dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "original_price": float(self.original_price),
            "current_stock": self.current_stock,
            "discounted_price": float(self._discounted_price),
            "discount_percentage": float(self.discount_percentage),
            "stock_limit": self.stock_limit,
            "purchase_limit": self.purchase_limit,
            "has_no_stock_limit": self.has_no_stock_limit,
            "has_no_purchase_limit": self.has_no_purchase_limit,
        }

    def __repr__(self) -> str:
        return f"PricedLine({self.product_id!r}, price={self._discounted_price}, original={self.original_price})"


class WorkingSelection:
    """Insertion-ordered product_id -> PricedLine map owned by one edit session."""

    def __init__(self, lines: Iterable[PricedLine] = ()):
        self._lines: "OrderedDict[str, PricedLine]" = OrderedDict()
        for line in lines:
            self._lines.setdefault(line.product_id, line)

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self) -> Iterator[PricedLine]:
        return iter(list(self._lines.values()))

    def __contains__(self, product_id: object) -> bool:
        return product_id in self._lines

    def ids(self) -> List[str]:
        return list(self._lines)

    def get(self, product_id: str) -> PricedLine:
        try:
            return self._lines[product_id]
        except KeyError:
            raise KeyError(f"Product {product_id} is not in the selection") from None

    def add(self, line: PricedLine) -> bool:
        if line.product_id in self._lines:
            return False
        self._lines[line.product_id] = line
        return True

    def remove(self, product_id: str) -> bool:
        return self._lines.pop(product_id, None) is not None

    def replace_all(self, lines: Dict[str, PricedLine]) -> None:
        for product_id, line in lines.items():
            self._lines[product_id] = line

    def to_entries(self) -> List[Dict]:
        return [line.to_entry() for line in self._lines.values()]


def _whole_number(value) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


@dataclass
class BatchUpdate:
    """One shared change for many lines, as posted by the batch dialog.

    Raw input is coerced on construction; anything unusable is collected and
    reported together by ``check()``.
    """

    percentage: Optional[Number] = None
    stock_limit_mode: LimitMode = LimitMode.NO_UPDATE
    stock_limit_value: Optional[int] = None
    purchase_limit_mode: LimitMode = LimitMode.NO_UPDATE
    purchase_limit_value: Optional[int] = None
    target_ids: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        self._errors: Dict[str, str] = {}
        self.percentage = self._parse_percentage(self.percentage)
        self.stock_limit_mode, self.stock_limit_value = self._parse_limit(
            "stock_limit", self.stock_limit_mode, self.stock_limit_value
        )
        self.purchase_limit_mode, self.purchase_limit_value = self._parse_limit(
            "purchase_limit", self.purchase_limit_mode, self.purchase_limit_value
        )
        self.target_ids = self._parse_targets(self.target_ids)

    def _parse_targets(self, value) -> FrozenSet[str]:
        if not value:
            return frozenset()
        if isinstance(value, (str, int)):
            return frozenset({str(value)})
        try:
            return frozenset(str(i) for i in value)
        except TypeError:
            self._errors["target_ids"] = "Targets must be a list of product ids"
            return frozenset()

    def _parse_percentage(self, value) -> Optional[Decimal]:
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        try:
            pct = None if isinstance(value, bool) else to_decimal(value)
        except (ArithmeticError, ValueError, TypeError):
            pct = None
        if pct is None or not pct.is_finite():
            self._errors["percentage"] = "Percentage must be a number"
            return None
        return pct

    def _parse_limit(self, key: str, mode, value) -> Tuple[LimitMode, Optional[int]]:
        try:
            mode = LimitMode(mode)
        except (ValueError, TypeError):
            self._errors[key] = f"Unknown limit mode: {mode}"
            return LimitMode.NO_UPDATE, None
        if mode != LimitMode.SET_LIMIT:
            return mode, None
        number = _whole_number(value)
        if number is None or number < 1:
            self._errors[key] = "Limit must be a whole number of at least 1"
        return mode, number

    def effective_percentage(self) -> Optional[Decimal]:
        if self.percentage is not None and 0 < self.percentage <= HUNDRED:
            return self.percentage
        return None

    def check(self) -> None:
        if self._errors:
            raise ValidationFailed(self._errors)


def _apply_limit(line: PricedLine, attr: str, mode: LimitMode, value: Optional[int]) -> None:
    if mode == LimitMode.NO_UPDATE:
        return
    if mode == LimitMode.NO_LIMIT:
        setattr(line, attr, None)
        setattr(line, f"has_no_{attr}", True)
    else:
        setattr(line, attr, int(value))
        setattr(line, f"has_no_{attr}", False)


def apply_batch(selection: WorkingSelection, update: BatchUpdate) -> List[str]:
    """Apply one shared change to the targeted lines; returns the touched ids.

    An empty target set means the whole selection; ids outside the selection
    are ignored. Changed lines are built as copies and swapped in together, so
    a rejected update leaves every line as it was.
    """
    update.check()
    if update.target_ids:
        targets = [pid for pid in selection.ids() if pid in update.target_ids]
    else:
        targets = selection.ids()
    if not targets:
        return []

    percentage = update.effective_percentage()
    staged: Dict[str, PricedLine] = {}
    for product_id in targets:
        line = selection.get(product_id).copy()
        if percentage is not None:
            line.discount_percentage = percentage
        _apply_limit(line, "stock_limit", update.stock_limit_mode, update.stock_limit_value)
        _apply_limit(line, "purchase_limit", update.purchase_limit_mode, update.purchase_limit_value)
        staged[product_id] = line

    selection.replace_all(staged)
    _logger.debug("Batch applied | targets=%s percentage=%s", len(staged), percentage)
    return targets

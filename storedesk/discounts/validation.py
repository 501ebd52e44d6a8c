"""Submit-time checks and payload building for a discount edit session.

Every violation is collected before rejecting, so the form can show all of
them at once. Checks run over the whole selection, not only what the last
batch touched.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional

from .model import DiscountStatus
from .pricing import WorkingSelection
from ..common.config import settings
from ..common.errors import ValidationFailed
from ..common.timeutil import TzLike, local_to_utc, parse_local, to_utc_iso


@dataclass
class DiscountForm:
    """Header fields as the operator typed them (local wall-clock strings)."""

    name: str = ""
    description: str = ""
    start_datetime: str = ""
    end_datetime: str = ""
    status: DiscountStatus = DiscountStatus.ACTIVE

    def __post_init__(self) -> None:
        self.status = DiscountStatus(self.status)
        self.end_datetime = self.end_datetime or ""


def format_money(amount) -> str:
    return f"{settings.CURRENCY_SYMBOL}{float(amount):,.2f}"


def collect_errors(form: DiscountForm, selection: WorkingSelection) -> Dict[str, str]:
    errors: Dict[str, str] = {}

    if not form.name.strip():
        errors["name"] = "Discount name is required"

    if len(selection) == 0:
        errors["products"] = "Please select at least one product for this discount"

    start = None
    if not form.start_datetime:
        errors["start_datetime"] = "Start date is required"
    else:
        try:
            start = parse_local(form.start_datetime)
        except ValueError:
            errors["start_datetime"] = "Start date is not a valid date and time"

    if form.end_datetime:
        try:
            end = parse_local(form.end_datetime)
        except ValueError:
            errors["end_datetime"] = "End date is not a valid date and time"
        else:
            if start is not None and end <= start:
                errors["end_datetime"] = "End date must be after start date"

    overpriced: List[str] = []
    overstocked: List[str] = []
    for line in selection:
        if line.discounted_price >= line.original_price:
            overpriced.append(f'"{line.name}" ({format_money(line.original_price)})')
        if not line.has_no_stock_limit and line.stock_limit and line.stock_limit > line.current_stock:
            overstocked.append(f'"{line.name}" limit {line.stock_limit}, available stock {line.current_stock}')

    if overpriced:
        errors["discount_value"] = "Discounted price must be less than original price for " + "; ".join(overpriced)
    if overstocked:
        errors["stock_limit"] = "Promotion stock limit cannot exceed available stock for " + "; ".join(overstocked)

    return errors


def build_payload(
    form: DiscountForm,
    selection: WorkingSelection,
    business_id: Optional[str] = None,
    tz: TzLike = None,
) -> Dict:
    payload = {
        "name": form.name.strip(),
        "description": form.description,
        "start_datetime": to_utc_iso(local_to_utc(form.start_datetime, tz)),
        "end_datetime": to_utc_iso(local_to_utc(form.end_datetime, tz)) if form.end_datetime else "",
        "status": form.status.value,
        "applicable_products": selection.to_entries(),
    }
    if business_id is not None:
        payload["business_id"] = business_id
    return payload


def validate_submission(
    form: DiscountForm,
    selection: WorkingSelection,
    business_id: Optional[str] = None,
    tz: TzLike = None,
) -> Dict:
    """Return the persistable payload or raise ValidationFailed with every error."""
    errors = collect_errors(form, selection)
    if errors:
        raise ValidationFailed(errors)
    return build_payload(form, selection, business_id, tz)

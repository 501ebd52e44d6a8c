import logging
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from .client import DiscountsClient
from .model import Discount, LimitMode, Product
from .pricing import BatchUpdate, Number, PricedLine, WorkingSelection, apply_batch
from .schedule import bucket_counts, effective_discount_status, filter_discounts
from .validation import DiscountForm, collect_errors, validate_submission
from ..common.errors import LookupNotFound
from ..common.timeutil import TzLike, local_in, local_now, utc_to_local

_logger = logging.getLogger(__name__)


class DiscountEditor:
    """One create/edit session.

    The working selection lives only as long as the session; nothing is sent
    upstream until ``submit``.
    """

    def __init__(
        self,
        business_id: str,
        catalog: Iterable[Product],
        client: Optional[DiscountsClient] = None,
        tz: TzLike = None,
        now: Optional[datetime] = None,
    ):
        self.business_id = business_id
        self.catalog: Dict[str, Product] = {p.id: p for p in catalog}
        self.client = client or DiscountsClient()
        self.tz = tz
        self.discount_id: Optional[str] = None
        self.form = DiscountForm(
            start_datetime=local_now(tz, now),
            end_datetime=local_in(timedelta(hours=1), tz, now),
        )
        self.selection = WorkingSelection()

    @classmethod
    async def create(cls, business_id: str, client: Optional[DiscountsClient] = None, tz: TzLike = None) -> "DiscountEditor":
        client = client or DiscountsClient()
        catalog = await client.fetch_products(business_id)
        return cls(business_id, catalog, client=client, tz=tz)

    @classmethod
    async def edit(cls, business_id: str, discount_id: str, client: Optional[DiscountsClient] = None, tz: TzLike = None) -> "DiscountEditor":
        client = client or DiscountsClient()
        catalog = await client.fetch_products(business_id)
        editor = cls(business_id, catalog, client=client, tz=tz)
        editor.load(await client.get_discount(discount_id))
        return editor

    def load(self, discount: Discount) -> None:
        self.discount_id = discount.id
        self.form = DiscountForm(
            name=discount.name,
            description=discount.description or "",
            start_datetime=utc_to_local(discount.start_datetime, self.tz),
            end_datetime=utc_to_local(discount.end_datetime, self.tz) if discount.end_datetime else "",
            status=discount.status,
        )
        self.selection = WorkingSelection()
        for entry in discount.applicable_products:
            product = self.catalog.get(entry.product_id)
            if product is None:
                _logger.warning(
                    "Discounted product missing from catalog | discount_id=%s product_id=%s",
                    discount.id,
                    entry.product_id,
                )
                continue
            self.selection.add(PricedLine.from_product(product, entry))

    def _product(self, product_id: str) -> Product:
        product = self.catalog.get(product_id)
        if product is None:
            raise LookupNotFound("product", product_id)
        return product

    def add_product(self, product_id: str) -> bool:
        return self.selection.add(PricedLine.from_product(self._product(product_id)))

    def remove_product(self, product_id: str) -> bool:
        return self.selection.remove(product_id)

    def set_discounted_price(self, product_id: str, price: Number) -> PricedLine:
        line = self.selection.get(product_id)
        line.discounted_price = price
        return line

    def set_discount_percentage(self, product_id: str, percentage: Number) -> PricedLine:
        line = self.selection.get(product_id)
        line.discount_percentage = percentage
        return line

    def set_stock_limit(self, product_id: str, limit: Optional[int]) -> PricedLine:
        line = self.selection.get(product_id)
        if limit is None:
            line.set_stock_limit_enabled(False)
        else:
            line.stock_limit = int(limit)
            line.has_no_stock_limit = False
        return line

    def set_purchase_limit(self, product_id: str, limit: Optional[int]) -> PricedLine:
        line = self.selection.get(product_id)
        if limit is None:
            line.set_purchase_limit_enabled(False)
        else:
            line.purchase_limit = int(limit)
            line.has_no_purchase_limit = False
        return line

    def apply_batch(
        self,
        target_ids: Iterable[str] = (),
        percentage: Optional[Number] = None,
        stock_limit_mode: LimitMode = LimitMode.NO_UPDATE,
        stock_limit_value: Optional[int] = None,
        purchase_limit_mode: LimitMode = LimitMode.NO_UPDATE,
        purchase_limit_value: Optional[int] = None,
    ) -> List[str]:
        update = BatchUpdate(
            percentage=percentage,
            stock_limit_mode=stock_limit_mode,
            stock_limit_value=stock_limit_value,
            purchase_limit_mode=purchase_limit_mode,
            purchase_limit_value=purchase_limit_value,
            target_ids=frozenset(target_ids),
        )
        return apply_batch(self.selection, update)

    def errors(self) -> Dict[str, str]:
        return collect_errors(self.form, self.selection)

    async def submit(self) -> Discount:
        payload = validate_submission(self.form, self.selection, self.business_id, self.tz)
        if self.discount_id:
            discount = await self.client.update_discount(self.discount_id, payload)
        else:
            discount = await self.client.create_discount(payload)
        _logger.info(
            "Discount submitted | business_id=%s discount_id=%s products=%s",
            self.business_id,
            discount.id,
            len(self.selection),
        )
        return discount


async def list_discounts(
    business_id: str,
    bucket: str = "all",
    query: Optional[str] = None,
    client: Optional[DiscountsClient] = None,
    now: Optional[datetime] = None,
) -> Dict:
    client = client or DiscountsClient()
    discounts = await client.list_discounts(business_id)
    items = []
    for discount in filter_discounts(discounts, bucket, query, now):
        data = discount.model_dump(mode="json")
        data["effective_status"] = effective_discount_status(discount, now).value
        items.append(data)
    return {"discounts": items, "counts": bucket_counts(discounts, now)}

from typing import Optional
from zoneinfo import ZoneInfoNotFoundError

from quart import Blueprint, jsonify, request

from .model import DiscountBucket, DiscountStatus, LimitMode
from .pricing import BatchUpdate, PricedLine, WorkingSelection, apply_batch
from .service import DiscountEditor, list_discounts
from .validation import DiscountForm, build_payload, collect_errors
from ..common.errors import ValidationFailed
from ..common.timeutil import resolve_tz

bp = Blueprint("discounts", __name__)


@bp.get("/businesses/<business_id>/discounts")
async def discounts_list(business_id: str):
    bucket = request.args.get("bucket", DiscountBucket.ALL.value)
    try:
        DiscountBucket(bucket)
    except ValueError:
        return jsonify({"ok": False, "error": "invalid_bucket", "bucket": bucket}), 400
    result = await list_discounts(business_id, bucket, request.args.get("q"))
    return jsonify(result)


async def _body() -> dict:
    data = await request.get_json(force=True)
    if not isinstance(data, dict):
        raise ValidationFailed({"body": "Request body must be a JSON object"})
    return data


def _timezone(data: dict) -> Optional[str]:
    tz = data.get("timezone")
    if tz is None:
        return None
    try:
        resolve_tz(str(tz))
    except (ZoneInfoNotFoundError, ValueError, OSError):
        raise ValidationFailed({"timezone": f"Unknown timezone: {tz}"}) from None
    return str(tz)


def _form(form_data) -> DiscountForm:
    if not isinstance(form_data, dict):
        raise ValidationFailed({"form": "Form must be an object"})
    status = form_data.get("status") or DiscountStatus.ACTIVE.value
    try:
        return DiscountForm(
            name=str(form_data.get("name") or ""),
            description=str(form_data.get("description") or ""),
            start_datetime=str(form_data.get("start_datetime") or ""),
            end_datetime=str(form_data.get("end_datetime") or ""),
            status=status,
        )
    except ValueError:
        raise ValidationFailed({"status": f"Unknown discount status: {status}"}) from None


def _line(raw: dict) -> PricedLine:
    return PricedLine(
        str(raw["product_id"]),
        str(raw.get("name") or raw["product_id"]),
        raw["original_price"],
        raw.get("current_stock") or 0,
        discounted_price=raw.get("discounted_price"),
        stock_limit=raw.get("stock_limit"),
        purchase_limit=raw.get("purchase_limit"),
        has_no_stock_limit=raw.get("has_no_stock_limit"),
        has_no_purchase_limit=raw.get("has_no_purchase_limit"),
    )


@bp.post("/discounts/preview")
async def discount_preview():
    """Stateless pass over a posted working selection: batch, then validate."""
    data = await _body()
    tz = _timezone(data)
    try:
        selection = WorkingSelection(_line(raw) for raw in data.get("products") or [])
    except (KeyError, TypeError, ValueError, ArithmeticError) as e:
        return jsonify({"ok": False, "error": "invalid_products", "message": str(e)}), 400

    touched = []
    batch = data.get("batch")
    if batch:
        if not isinstance(batch, dict):
            raise ValidationFailed({"batch": "Batch must be an object"})
        update = BatchUpdate(
            percentage=batch.get("percentage"),
            stock_limit_mode=batch.get("stock_limit_mode", LimitMode.NO_UPDATE.value),
            stock_limit_value=batch.get("stock_limit_value"),
            purchase_limit_mode=batch.get("purchase_limit_mode", LimitMode.NO_UPDATE.value),
            purchase_limit_value=batch.get("purchase_limit_value"),
            target_ids=batch.get("target_ids"),
        )
        touched = apply_batch(selection, update)

    form = _form(data.get("form") or {})
    errors = collect_errors(form, selection)
    result = {
        "ok": not errors,
        "products": [line.to_dict() for line in selection],
        "touched": touched,
        "errors": errors,
    }
    if not errors:
        result["payload"] = build_payload(form, selection, data.get("business_id"), tz)
    return jsonify(result)


def _load_products(editor: DiscountEditor, rows) -> None:
    """Rebuild the editor's selection from posted rows, reporting bad rows together."""
    if not isinstance(rows, list):
        raise ValidationFailed({"products": "Products must be a list"})
    editor.selection = WorkingSelection()
    problems = []
    for raw in rows:
        if not isinstance(raw, dict) or raw.get("product_id") in (None, ""):
            problems.append("every product needs a product_id")
            continue
        product_id = str(raw["product_id"])
        editor.add_product(product_id)
        try:
            if raw.get("discounted_price") is not None:
                editor.set_discounted_price(product_id, raw["discounted_price"])
            elif raw.get("discount_percentage") is not None:
                editor.set_discount_percentage(product_id, raw["discount_percentage"])
            editor.set_stock_limit(product_id, raw.get("stock_limit"))
            editor.set_purchase_limit(product_id, raw.get("purchase_limit"))
        except (ArithmeticError, ValueError, TypeError):
            problems.append(f"invalid price or limit for product {product_id}")
    if problems:
        raise ValidationFailed({"products": "; ".join(problems)})


async def _submit(business_id: str, discount_id: Optional[str] = None):
    data = await _body()
    tz = _timezone(data)
    form = _form(data.get("form") or {})
    if discount_id:
        editor = await DiscountEditor.edit(business_id, discount_id, tz=tz)
    else:
        editor = await DiscountEditor.create(business_id, tz=tz)
    editor.form = form
    _load_products(editor, data.get("products") or [])

    discount = await editor.submit()
    return jsonify({"ok": True, "discount": discount.model_dump(mode="json")}), 200 if discount_id else 201


@bp.post("/businesses/<business_id>/discounts")
async def discount_create(business_id: str):
    return await _submit(business_id)


@bp.patch("/businesses/<business_id>/discounts/<discount_id>")
async def discount_update(business_id: str, discount_id: str):
    return await _submit(business_id, discount_id)

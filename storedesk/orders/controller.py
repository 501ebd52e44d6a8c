from quart import Blueprint, jsonify, request

from pydantic import ValidationError

from .model import PaymentStatusChange
from .service import DeskRegistry

bp = Blueprint("orders", __name__)

registry = DeskRegistry()


@bp.get("/businesses/<business_id>/orders")
async def orders_list(business_id: str):
    desk = await registry.get(business_id)
    view = desk.view(request.args.get("status"), request.args.get("q"))
    return jsonify(
        {
            "business_id": business_id,
            "orders": [o.to_json() for o in view["orders"]],
            "counts": view["counts"],
            "stale": desk.last_error is not None,
        }
    )


@bp.post("/businesses/<business_id>/orders/refresh")
async def orders_refresh(business_id: str):
    desk = await registry.get(business_id)
    orders = await desk.refresh()
    return jsonify({"ok": True, "count": len(orders)})


@bp.get("/businesses/<business_id>/orders/<order_id>/actions")
async def order_actions(business_id: str, order_id: str):
    desk = await registry.get(business_id)
    actions = desk.actions(order_id)
    return jsonify({"order_id": order_id, "actions": [a.to_dict() for a in actions]})


@bp.post("/businesses/<business_id>/orders/<order_id>/status")
async def order_status_post(business_id: str, order_id: str):
    data = await request.get_json(force=True)
    desk = await registry.get(business_id)
    issued = await desk.change_status(order_id, str(data.get("status", "")))
    if not issued:
        return jsonify({"ok": False, "error": "request_in_flight", "order_id": order_id}), 409
    order = desk.store.get(order_id)
    return jsonify({"ok": True, "order": order.to_json() if order else None})


@bp.post("/businesses/<business_id>/orders/<order_id>/payment-status")
async def payment_status_post(business_id: str, order_id: str):
    data = await request.get_json(force=True)
    desk = await registry.get(business_id)
    try:
        change = PaymentStatusChange.model_validate(data or {})
    except ValidationError:
        return jsonify({"ok": False, "error": "invalid_payment_status"}), 400
    issued = await desk.change_payment_status(order_id, change.payment_status)
    if not issued:
        return jsonify({"ok": False, "error": "request_in_flight", "order_id": order_id}), 409
    order = desk.store.get(order_id)
    return jsonify({"ok": True, "order": order.to_json() if order else None})


@bp.post("/businesses/<business_id>/arrivals")
async def arrival_post(business_id: str):
    data = await request.get_json(force=True)
    desk = await registry.get(business_id)
    result = await desk.verify_arrival(str(data.get("code", "")))
    if result is None:
        return jsonify({"ok": False, "error": "request_in_flight"}), 409
    return jsonify({"ok": True, "order_number": result.order_number, "message": result.message})

import time

from paybridge.models.order import Order, Outcome


def build_callback_params(order: Order, outcome: Outcome, message: str | None = None,
                          timestamp: int | None = None) -> dict[str, str]:
    """Unsigned callback fields for the merchant platform.

    Amount and currency are the ones the merchant quoted, never the
    converted ones.
    """
    params = {
        "x_account_id": order.account_id,
        "x_amount": str(order.amount),
        "x_currency": order.currency,
        "x_reference": order.reference,
        "x_result": outcome.value,
        "x_timestamp": str(int(time.time()) if timestamp is None else timestamp),
    }
    if message:
        params["x_message"] = message
    return params

from typing import List, Optional
from jose import jwt
from storefront.config.settings import config_settings
from storefront.notifications.notifier import Notifier

url_prefix = "/api/v1"


class RecordingNotifier(Notifier):
    def __init__(self):
        self.confirmations: List[dict] = []
        self.cancellations: List[dict] = []
        self.fail = False

    async def send_order_confirmation(self, order):
        if self.fail:
            raise RuntimeError("smtp down")
        self.confirmations.append(order)

    async def send_cancellation_notice(self, order):
        if self.fail:
            raise RuntimeError("smtp down")
        self.cancellations.append(order)


def make_token(user_id: int, email: Optional[str] = None, roles=()) -> str:
    claims = {"sub": str(user_id), "email": email or f"user{user_id}@example.com", "roles": list(roles)}
    return jwt.encode(claims, config_settings.JWT_SECRET, algorithm=config_settings.JWT_ALGO)


def user_headers(user_id: int, **kwargs) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, **kwargs)}"}


def guest_headers(session_id: str) -> dict:
    return {"X-Session-Token": session_id}


def admin_headers(user_id: int = 900) -> dict:
    return user_headers(user_id, roles=["admin"])


def address(**overrides) -> dict:
    data = {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "address_line1": "12 Kennel Road",
        "city": "Portland",
        "state": "OR",
        "zip_code": "97201",
        "phone": "555-0100",
    }
    data.update(overrides)
    return data


async def add_to_cart(client, headers: dict, product_id: int, quantity: int = 1):
    return await client.post(f"{url_prefix}/cart/items", json={"product_id": product_id, "quantity": quantity},
                             headers=headers)


async def place_order(client, headers: dict, items, *, shipping_method: str = "standard",
                      promo_code: Optional[str] = None, **confirm_fields) -> dict:
    """Fill the cart, open a payment intent and confirm it. Returns the created order."""
    for product_id, quantity in items:
        resp = await add_to_cart(client, headers, product_id, quantity)
        assert resp.status_code == 201, resp.text

    resp = await client.post(f"{url_prefix}/checkout/create-payment",
                             json={"shipping_method": shipping_method, "promo_code": promo_code}, headers=headers)
    assert resp.status_code == 201, resp.text
    intent_id = resp.json()["data"]["payment_intent_id"]

    body = {
        "payment_intent_id": intent_id,
        "shipping_method": shipping_method,
        "shipping_address": address(),
        "promo_code": promo_code,
        **confirm_fields,
    }
    resp = await client.post(f"{url_prefix}/checkout/confirm", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]["order"]

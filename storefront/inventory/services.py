from typing import Dict, Iterable, List, Optional
from storefront.inventory.constants import logger
from storefront.inventory.repository import adjust_stock, get_products


def stock_issue(product_id: int, product_name: str, requested: int, available: int) -> Dict:
    return {
        "product_id": product_id,
        "product_name": product_name,
        "requested_quantity": requested,
        "available_quantity": available,
    }


async def check_stock(session, lines: Iterable[Dict]) -> List[Dict]:
    """Stock issues for the given lines, an empty list means every line can be fulfilled.

    Missing and inactive products report zero availability.
    """
    lines = list(lines)
    products = await get_products(session, [ln["product_id"] for ln in lines])
    issues = []
    for ln in lines:
        product = products.get(ln["product_id"])
        available = product["stock_qty"] if product and product["is_active"] else 0
        if available < ln["quantity"]:
            name = product["name"] if product else ln.get("product_name", "")
            issues.append(stock_issue(ln["product_id"], name, ln["quantity"], available))
    return issues


async def decrement_for_lines(session, lines: Iterable[Dict]) -> Optional[Dict]:
    """Take stock for every line. Stops at the first line that cannot be covered and returns it.

    None means every line was taken. Otherwise the caller owns the transaction and must
    roll back, earlier lines are already applied.
    """
    for ln in lines:
        if not await adjust_stock(session, ln["product_id"], -ln["quantity"]):
            logger.warning("stock.decrement_refused", extra={
                "product_id": ln["product_id"],
                "quantity": ln["quantity"],
            })
            return ln
    return None


async def restock_lines(session, lines: Iterable[Dict]) -> None:
    lines = list(lines)
    for ln in lines:
        await adjust_stock(session, ln["product_id"], ln["quantity"])
    logger.info("stock.restocked", extra={"lines": [(ln["product_id"], ln["quantity"]) for ln in lines]})


async def issues_after_refusal(session, lines: Iterable[Dict], refused: Dict) -> List[Dict]:
    """Stock issues to report once `decrement_for_lines` refused a line.

    Stock may have come back between the refusal and the re-check, the refused line is
    then reported on its own with the availability read now.
    """
    issues = await check_stock(session, lines)
    if issues:
        return issues
    product = (await get_products(session, [refused["product_id"]])).get(refused["product_id"])
    available = product["stock_qty"] if product and product["is_active"] else 0
    name = product["name"] if product else refused.get("product_name", "")
    return [stock_issue(refused["product_id"], name, refused["quantity"], available)]

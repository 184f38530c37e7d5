"""Raw request payload builders shared by the test modules."""

OWNER_ID = "owner-a"
OTHER_OWNER_ID = "owner-b"

ESTIMATED_END = "2024-02-01T17:00:00+00:00"


def service_line(description: str = "Labour", quantity: str = "1", unit_price: str = "80.00"):
    return {"description": description, "quantity": quantity, "unit_price": unit_price}


def free_part(description: str = "Shop rag", quantity: int = 1, unit_price: str = "2.50"):
    return {"description": description, "quantity": quantity, "unit_price": unit_price}


def linked_part(item, quantity: int) -> dict:
    return {"inventory_id": str(item.id), "quantity": quantity}


def budget_payload(parts=(), services=None, **fields) -> dict:
    return {
        "customer_id": "cust-1",
        "vehicle_id": "veh-1",
        "services": list(services) if services is not None else [service_line()],
        "parts": list(parts),
        **fields,
    }


def order_payload(parts=(), services=None, **fields) -> dict:
    return {
        "customer_id": "cust-1",
        "vehicle_id": "veh-1",
        "estimated_end_date": ESTIMATED_END,
        "services": list(services) if services is not None else [service_line()],
        "parts": list(parts),
        **fields,
    }

"""Human-readable payment method labels from gateway invoice data."""

from typing import Any

BANK_LABELS = {
    "BCA": "BCA Virtual Account",
    "BNI": "BNI Virtual Account",
    "BRI": "BRI Virtual Account",
    "MANDIRI": "Mandiri Virtual Account",
    "PERMATA": "Permata Virtual Account",
    "SAHABAT_SAMPOERNA": "Sahabat Sampoerna Virtual Account",
    "BJB": "BJB Virtual Account",
    "CIMB": "CIMB Virtual Account",
}

EWALLET_LABELS = {
    "GOPAY": "GoPay",
    "OVO": "OVO",
    "DANA": "DANA",
    "SHOPEEPAY": "ShopeePay",
    "LINKAJA": "LinkAja",
    "JENIUS": "Jenius",
    "ASTRAPAY": "AstraPay",
}

RETAIL_LABELS = {
    "ALFAMART": "Alfamart",
    "INDOMARET": "Indomaret",
}

DEFAULT_LABEL = "Xendit Payment"


def _from_method_object(method: dict[str, Any], data: dict[str, Any]) -> str:
    method_type = method.get("type")

    if method_type == "BANK_TRANSFER":
        code = method.get("bank_code") or method.get("channel_code") or data.get("bank_code")
        return BANK_LABELS.get(code, f"Bank Transfer ({code})")

    if method_type == "EWALLET":
        code = method.get("ewallet_type") or method.get("channel_code") or data.get("ewallet_type")
        return EWALLET_LABELS.get(code, f"E-Wallet ({code})")

    if method_type == "QRIS":
        return "QRIS"

    if method_type == "CREDIT_CARD":
        card_type = method.get("card_type") or "Credit Card"
        brand = method.get("card_brand")
        return f"{brand} {card_type}" if brand else card_type

    if method_type == "RETAIL_OUTLET":
        code = method.get("retail_outlet_name") or method.get("channel_code")
        return RETAIL_LABELS.get(code, f"Retail Outlet ({code})")

    return method_type or "Unknown Payment Method"


def resolve_payment_method(data: dict[str, Any]) -> str:
    """Pick the best label the invoice payload offers.

    Invoices report the method either as a structured ``payment_method``
    object or as flat fields (``bank_code``, ``ewallet_type``, ...).
    """
    method = data.get("payment_method")
    if isinstance(method, dict):
        return _from_method_object(method, data)
    if isinstance(method, str) and method:
        code = data.get("bank_code") or data.get("ewallet_type") or data.get("retail_outlet_name")
        if method == "BANK_TRANSFER" and code:
            return BANK_LABELS.get(code, f"Bank Transfer ({code})")
        if method == "EWALLET" and code:
            return EWALLET_LABELS.get(code, f"E-Wallet ({code})")
        return method

    if data.get("bank_code"):
        return f"Bank Transfer ({data['bank_code']})"
    if data.get("ewallet_type"):
        return f"E-Wallet ({data['ewallet_type']})"
    if data.get("payment_channel"):
        return data["payment_channel"]
    if data.get("channel_code"):
        return data["channel_code"]
    if data.get("qr_string") or data.get("qr_code"):
        return "QRIS"
    return DEFAULT_LABEL

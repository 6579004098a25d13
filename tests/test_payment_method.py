import pytest

from jasaku.utils.payment_method import DEFAULT_LABEL, resolve_payment_method


@pytest.mark.parametrize(
    "data, label",
    [
        ({"payment_method": {"type": "BANK_TRANSFER", "bank_code": "BCA"}}, "BCA Virtual Account"),
        ({"payment_method": {"type": "BANK_TRANSFER", "bank_code": "XYZ"}}, "Bank Transfer (XYZ)"),
        ({"payment_method": {"type": "EWALLET", "ewallet_type": "GOPAY"}}, "GoPay"),
        ({"payment_method": {"type": "QRIS"}}, "QRIS"),
        (
            {"payment_method": {"type": "CREDIT_CARD", "card_brand": "VISA", "card_type": "CREDIT"}},
            "VISA CREDIT",
        ),
        ({"payment_method": {"type": "CREDIT_CARD"}}, "Credit Card"),
        ({"payment_method": {"type": "RETAIL_OUTLET", "retail_outlet_name": "ALFAMART"}}, "Alfamart"),
        ({"payment_method": "BANK_TRANSFER", "bank_code": "MANDIRI"}, "Mandiri Virtual Account"),
        ({"payment_method": "EWALLET", "ewallet_type": "OVO"}, "OVO"),
        ({"payment_method": "DIRECT_DEBIT"}, "DIRECT_DEBIT"),
        ({"bank_code": "BNI"}, "Bank Transfer (BNI)"),
        ({"ewallet_type": "DANA"}, "E-Wallet (DANA)"),
        ({"payment_channel": "INDOMARET"}, "INDOMARET"),
        ({"qr_string": "00020101..."}, "QRIS"),
        ({}, DEFAULT_LABEL),
    ],
)
def test_resolve_payment_method(data, label):
    assert resolve_payment_method(data) == label

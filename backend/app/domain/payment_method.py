from enum import Enum


class PaymentMethod(str, Enum):
    cash = "cash"
    bank_transfer = "bank_transfer"
    scholarship = "scholarship"

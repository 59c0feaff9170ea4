from enum import Enum


class EmployeeRole(str, Enum):
    admin = "admin"
    cashier = "cashier"

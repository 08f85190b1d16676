from .tenancy import Company, Branch, branch_services
from .staff import Employee, EMPLOYEE_ROLES, SUPER_ADMIN
from .customers import Customer, MedicalHistory
from .catalog import Service, Product, SERVICE_TYPES, PRODUCT_TYPES
from .orders import Order, ServiceUsage, ORDER_STATUSES, PAYMENT_METHODS, ORDER_ITEM_TYPES
from .auth import LoginSession, QRCode, PRINCIPAL_EMPLOYEE, PRINCIPAL_CUSTOMER, PRINCIPAL_KINDS
from .audit import AuditRecord, AuditRecordImmutableError
from .subscriptions import Subscription

__all__ = [
    'Company', 'Branch', 'branch_services',
    'Employee', 'EMPLOYEE_ROLES', 'SUPER_ADMIN',
    'Customer', 'MedicalHistory',
    'Service', 'Product', 'SERVICE_TYPES', 'PRODUCT_TYPES',
    'Order', 'ServiceUsage', 'ORDER_STATUSES', 'PAYMENT_METHODS', 'ORDER_ITEM_TYPES',
    'LoginSession', 'QRCode', 'PRINCIPAL_EMPLOYEE', 'PRINCIPAL_CUSTOMER', 'PRINCIPAL_KINDS',
    'AuditRecord', 'AuditRecordImmutableError',
    'Subscription',
]

# Overview: String constants for ledger statuses, types and roles.

# =============================================================================
# PURCHASE
# =============================================================================

PURCHASE_TYPE_CASH = "CASH"
PURCHASE_TYPE_LAYAWAY = "LAYAWAY"
PURCHASE_TYPE_CREDIT = "CREDIT"

VALID_PURCHASE_TYPES = [
    PURCHASE_TYPE_CASH,
    PURCHASE_TYPE_LAYAWAY,
    PURCHASE_TYPE_CREDIT,
]

# Purchase types whose goods are handed over only once fully paid
DELIVERABLE_PURCHASE_TYPES = {PURCHASE_TYPE_CASH, PURCHASE_TYPE_LAYAWAY}

PURCHASE_STATUS_PENDING = "PENDING"
PURCHASE_STATUS_ACTIVE = "ACTIVE"
PURCHASE_STATUS_COMPLETED = "COMPLETED"
PURCHASE_STATUS_OVERDUE = "OVERDUE"

VALID_PURCHASE_STATUSES = [
    PURCHASE_STATUS_PENDING,
    PURCHASE_STATUS_ACTIVE,
    PURCHASE_STATUS_COMPLETED,
    PURCHASE_STATUS_OVERDUE,
]

INTEREST_TYPE_FLAT = "FLAT"
INTEREST_TYPE_MONTHLY = "MONTHLY"

VALID_INTEREST_TYPES = [INTEREST_TYPE_FLAT, INTEREST_TYPE_MONTHLY]

DEFAULT_TENOR_DAYS = 90
DEFAULT_INSTALLMENTS = 3
DAYS_PER_INSTALLMENT = 30


# =============================================================================
# DELIVERY
# =============================================================================

DELIVERY_STATUS_PENDING = "PENDING"
DELIVERY_STATUS_SCHEDULED = "SCHEDULED"
DELIVERY_STATUS_IN_TRANSIT = "IN_TRANSIT"
DELIVERY_STATUS_DELIVERED = "DELIVERED"
DELIVERY_STATUS_FAILED = "FAILED"

DELIVERY_TRANSITIONS = {
    DELIVERY_STATUS_PENDING: {DELIVERY_STATUS_SCHEDULED},
    DELIVERY_STATUS_SCHEDULED: {DELIVERY_STATUS_IN_TRANSIT},
    DELIVERY_STATUS_IN_TRANSIT: {DELIVERY_STATUS_DELIVERED, DELIVERY_STATUS_FAILED},
    DELIVERY_STATUS_DELIVERED: set(),
    DELIVERY_STATUS_FAILED: set(),
}


# =============================================================================
# PAYMENT
# =============================================================================

PAYMENT_METHOD_CASH = "CASH"
PAYMENT_METHOD_MOBILE_MONEY = "MOBILE_MONEY"
PAYMENT_METHOD_BANK_TRANSFER = "BANK_TRANSFER"
PAYMENT_METHOD_CARD = "CARD"
PAYMENT_METHOD_WALLET = "WALLET"

VALID_PAYMENT_METHODS = [
    PAYMENT_METHOD_CASH,
    PAYMENT_METHOD_MOBILE_MONEY,
    PAYMENT_METHOD_BANK_TRANSFER,
    PAYMENT_METHOD_CARD,
    PAYMENT_METHOD_WALLET,
]

PAYMENT_STATE_UNCONFIRMED = "UNCONFIRMED"
PAYMENT_STATE_CONFIRMED = "CONFIRMED"
PAYMENT_STATE_REJECTED = "REJECTED"


# =============================================================================
# REFUND
# =============================================================================

REFUND_STATUS_PENDING = "PENDING"
REFUND_STATUS_APPROVED = "APPROVED"
REFUND_STATUS_PROCESSED = "PROCESSED"
REFUND_STATUS_REJECTED = "REJECTED"

REFUND_REASON_PRODUCT_DEFECT = "PRODUCT_DEFECT"
REFUND_REASON_WRONG_ITEM = "WRONG_ITEM"
REFUND_REASON_DUPLICATE_PAYMENT = "DUPLICATE_PAYMENT"
REFUND_REASON_CONTRACT_CANCELLED = "CONTRACT_CANCELLED"
REFUND_REASON_CUSTOMER_REQUEST = "CUSTOMER_REQUEST"
REFUND_REASON_OVERCHARGE = "OVERCHARGE"
REFUND_REASON_OTHER = "OTHER"

VALID_REFUND_REASONS = [
    REFUND_REASON_PRODUCT_DEFECT,
    REFUND_REASON_WRONG_ITEM,
    REFUND_REASON_DUPLICATE_PAYMENT,
    REFUND_REASON_CONTRACT_CANCELLED,
    REFUND_REASON_CUSTOMER_REQUEST,
    REFUND_REASON_OVERCHARGE,
    REFUND_REASON_OTHER,
]

VALID_REFUND_METHODS = [
    PAYMENT_METHOD_CASH,
    PAYMENT_METHOD_MOBILE_MONEY,
    PAYMENT_METHOD_BANK_TRANSFER,
    PAYMENT_METHOD_WALLET,
]

# Transaction reference that means "credited to the customer wallet"
WALLET_REFERENCE = "wallet"


# =============================================================================
# WALLET
# =============================================================================

WALLET_TXN_DEPOSIT = "DEPOSIT"
WALLET_TXN_PAYMENT = "PAYMENT"
WALLET_TXN_REFUND = "REFUND"
WALLET_TXN_ADJUSTMENT = "ADJUSTMENT"

WALLET_STATUS_PENDING = "PENDING"
WALLET_STATUS_CONFIRMED = "CONFIRMED"
WALLET_STATUS_REJECTED = "REJECTED"


# =============================================================================
# ROLES
# =============================================================================

ROLE_BUSINESS_ADMIN = "BUSINESS_ADMIN"
ROLE_SHOP_ADMIN = "SHOP_ADMIN"
ROLE_ACCOUNTANT = "ACCOUNTANT"
ROLE_DEBT_COLLECTOR = "DEBT_COLLECTOR"
ROLE_SALES_STAFF = "SALES_STAFF"

VALID_ROLES = [
    ROLE_BUSINESS_ADMIN,
    ROLE_SHOP_ADMIN,
    ROLE_ACCOUNTANT,
    ROLE_DEBT_COLLECTOR,
    ROLE_SALES_STAFF,
]

# Roles that may hold confirm authority when the per-user flag is set
CONFIRM_CAPABLE_ROLES = {ROLE_SHOP_ADMIN, ROLE_ACCOUNTANT}


# =============================================================================
# IMPORTS / DOCUMENT NUMBERS
# =============================================================================

IMPORT_TYPE_PURCHASES = "PURCHASES"
IMPORT_TYPE_PAYMENTS = "PAYMENTS"
IMPORT_TYPE_PRODUCTS = "PRODUCTS"
IMPORT_TYPE_CUSTOMERS = "CUSTOMERS"

DOC_TYPE_PURCHASE = "PURCHASE"
DOC_TYPE_REFUND = "REFUND"
DOC_TYPE_WAYBILL = "WAYBILL"

PURCHASE_NUMBER_PREFIX = "HP"
REFUND_NUMBER_PREFIX = "RF"
WAYBILL_NUMBER_PREFIX = "WB"

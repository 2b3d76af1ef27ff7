"""
String constants for billing fields.
Using plain strings (not Enums) so values map 1:1 onto the stored columns.
"""


class Provider:
    STRIPE = "STRIPE"
    ASAAS = "ASAAS"

    ALL = (STRIPE, ASAAS)


class SubscriptionStatus:
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"

    # statuses that count towards the one-subscription-per-user rule
    OPEN = (PENDING, ACTIVE)


class PlanInterval:
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"

    ALL = (WEEK, MONTH, YEAR)


class AsaasPaymentStatus:
    PENDING = "PENDING"
    RECEIVED = "RECEIVED"
    CONFIRMED = "CONFIRMED"
    OVERDUE = "OVERDUE"
    REFUNDED = "REFUNDED"

    PAID = (RECEIVED, CONFIRMED)


class AsaasEvent:
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
    PAYMENT_UPDATED = "PAYMENT_UPDATED"
    PAYMENT_OVERDUE = "PAYMENT_OVERDUE"
    PAYMENT_DELETED = "PAYMENT_DELETED"
    PAYMENT_RESTORED = "PAYMENT_RESTORED"
    PAYMENT_REFUNDED = "PAYMENT_REFUNDED"
    PAYMENT_RECEIVED_IN_CASH_UNDONE = "PAYMENT_RECEIVED_IN_CASH_UNDONE"
    PAYMENT_CHARGEBACK_REQUESTED = "PAYMENT_CHARGEBACK_REQUESTED"
    PAYMENT_CHARGEBACK_DISPUTE = "PAYMENT_CHARGEBACK_DISPUTE"
    PAYMENT_AWAITING_CHARGEBACK_REVERSAL = "PAYMENT_AWAITING_CHARGEBACK_REVERSAL"

    PAYMENT_STATUS_EVENTS = (
        PAYMENT_RECEIVED,
        PAYMENT_CONFIRMED,
        PAYMENT_UPDATED,
        PAYMENT_OVERDUE,
        PAYMENT_DELETED,
        PAYMENT_RESTORED,
        PAYMENT_REFUNDED,
        PAYMENT_RECEIVED_IN_CASH_UNDONE,
        PAYMENT_CHARGEBACK_REQUESTED,
        PAYMENT_CHARGEBACK_DISPUTE,
        PAYMENT_AWAITING_CHARGEBACK_REVERSAL,
    )

    # the PIX charge can no longer be paid after these
    PIX_INVALIDATING = (PAYMENT_DELETED, PAYMENT_REFUNDED)

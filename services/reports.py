"""Month-to-date and year-to-date reporting for a linked Stripe account"""

from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from typing import Iterable, List
import structlog
from core.config import Config
from core.errors import AggregationPartial, AuthorizationError


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def month_start(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def year_start(now: datetime) -> datetime:
    return now.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)


@dataclass
class ReportWindow:
    revenue: int = 0
    transactions: int = 0
    refunds_amount: int = 0
    average_transaction_value: float = 0
    customers: int = 0
    new_customers: int = 0
    transaction_fees: int = 0
    gaps: List[str] = field(default_factory=list)


def transaction_fees(charges) -> int:
    # Charge objects do not carry Stripe's processing fees; those live on
    # balance transactions, which the report does not fetch.
    raise AggregationPartial("transaction fees need the balance-transaction feed")


def aggregate_window(charges: Iterable, new_customer_since: int) -> ReportWindow:
    """Reduce one window's charges to its headline numbers.

    ``new_customer_since`` is an epoch timestamp; a charge counts towards
    ``new_customers`` when its customer was created at or after it.
    """
    charges = list(charges)
    window = ReportWindow()
    window.revenue = sum(c.amount for c in charges if c.paid and not c.refunded)
    window.transactions = sum(1 for c in charges if c.paid)
    window.refunds_amount = sum(c.amount_refunded for c in charges if c.refunded)
    window.average_transaction_value = window.revenue / window.transactions if window.transactions else 0
    window.customers = len({c.customer_email for c in charges if c.customer_email})
    window.new_customers = sum(
        1 for c in charges if c.customer_created is not None and c.customer_created >= new_customer_since
    )
    try:
        window.transaction_fees = transaction_fees(charges)
    except AggregationPartial as gap:
        structlog.get_logger().info("aggregation_partial", metric="transaction_fees", reason=gap.message)
        window.transaction_fees = 0
        window.gaps.append("transaction_fees")
    return window


class ReportAggregator:
    def __init__(self, payments, authorizations, clock=None, recent_limit=None, payout_limit=None):
        self.payments = payments
        self.authorizations = authorizations
        self.clock = clock or utc_now
        self.recent_limit = recent_limit or Config.REPORT_RECENT_CHARGES
        self.payout_limit = payout_limit or Config.REPORT_PAYOUT_LIMIT

    def authorize(self, identity, account_id):
        if not self.authorizations.find(account_id, identity):
            raise AuthorizationError("You are not authorized to view this account.")

    def generate(self, identity, account_id):
        logger = structlog.get_logger()
        self.authorize(identity, account_id)
        now = self.clock()
        now_ts = int(now.timestamp())
        mtd_start = int(month_start(now).timestamp())
        ytd_start = int(year_start(now).timestamp())

        mtd_charges = self.payments.list_charges(account_id, mtd_start, now_ts)
        ytd_charges = self.payments.list_charges(account_id, ytd_start, now_ts)
        mtd = aggregate_window(mtd_charges, mtd_start)
        ytd = aggregate_window(ytd_charges, ytd_start)
        # Known formula: YTD distinct customers minus this month's new-customer charges.
        returning = ytd.customers - mtd.new_customers

        payouts = self.payments.list_payouts(account_id, limit=self.payout_limit)
        balance = self.payments.get_balance(account_id)
        recent = sorted(mtd_charges, key=lambda c: c.created, reverse=True)[: self.recent_limit]
        logger.info("report_generated", account_id=account_id, identity=identity,
                    mtd_charges=len(mtd_charges), ytd_charges=len(ytd_charges))
        return {
            "stripeAccountId": account_id,
            "generatedOn": now.date().isoformat(),
            "charges": [c.to_dict() for c in recent],
            "payouts": payouts,
            "balance": balance,
            "metrics": {
                "revenueMTD": mtd.revenue,
                "revenueYTD": ytd.revenue,
                "transactionsMTD": mtd.transactions,
                "transactionsYTD": ytd.transactions,
                "refundsAmountMTD": mtd.refunds_amount,
                "refundsAmountYTD": ytd.refunds_amount,
                "averageTransactionValueMTD": mtd.average_transaction_value,
                "averageTransactionValueYTD": ytd.average_transaction_value,
                "transactionFeesMTD": mtd.transaction_fees,
                "transactionFeesYTD": ytd.transaction_fees,
                "totalCustomers": ytd.customers,
                "newCustomersMTD": mtd.new_customers,
                "returningCustomersMTD": returning,
            },
            "windows": {"mtd": asdict(mtd), "ytd": asdict(ytd)},
        }

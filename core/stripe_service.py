from dataclasses import dataclass, asdict
from typing import Iterator, List, Optional
import stripe
import structlog
from core.errors import OAuthExchangeError

def _field(obj, key, default=None):
    if obj is None or isinstance(obj, str):
        return default
    getter = getattr(obj, "get", None)
    value = getter(key) if callable(getter) else getattr(obj, key, None)
    return default if value is None else value

def _to_plain(obj):
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return dict(obj)

def compose_address(address):
    """Single-line address; parts missing from Stripe leave no stray separators."""
    if not address:
        return ""
    region = " ".join(p for p in (_field(address, "state", ""), _field(address, "postal_code", "")) if p.strip())
    parts = (
        _field(address, "line1", ""),
        _field(address, "city", ""),
        region,
        _field(address, "country", ""),
    )
    return ", ".join(p.strip() for p in parts if p and p.strip())

@dataclass
class LinkedAccount:
    account_id: str
    charges_enabled: bool = False
    payouts_enabled: bool = False
    business_name: str = ""
    business_address: str = ""
    business_phone: str = ""
    business_website: str = ""
    business_description: str = ""
    legal_entity_type: str = ""
    email: str = ""

    @classmethod
    def from_stripe(cls, account):
        profile = _field(account, "business_profile")
        company_address = _field(_field(account, "company"), "address")
        individual_address = _field(_field(account, "individual"), "address")
        return cls(
            account_id=_field(account, "id", ""),
            charges_enabled=bool(_field(account, "charges_enabled", False)),
            payouts_enabled=bool(_field(account, "payouts_enabled", False)),
            business_name=_field(profile, "name", ""),
            business_address=compose_address(company_address or individual_address),
            business_phone=_field(profile, "support_phone", ""),
            business_website=_field(profile, "url", ""),
            business_description=_field(profile, "product_description", "") or _field(profile, "tagline", ""),
            legal_entity_type=_field(account, "business_type", "") or _field(account, "type", ""),
            email=_field(account, "email", ""),
        )

@dataclass
class ChargeRecord:
    id: str
    amount: int
    paid: bool
    refunded: bool
    amount_refunded: int
    created: int
    currency: str = ""
    status: str = ""
    description: str = ""
    customer_id: Optional[str] = None
    customer_email: str = ""
    customer_created: Optional[int] = None

    @classmethod
    def from_stripe(cls, charge):
        customer = _field(charge, "customer")
        if isinstance(customer, str):
            customer_id, customer = customer, None
        else:
            customer_id = _field(customer, "id")
        return cls(
            id=_field(charge, "id", ""),
            amount=int(_field(charge, "amount", 0)),
            paid=bool(_field(charge, "paid", False)),
            refunded=bool(_field(charge, "refunded", False)),
            amount_refunded=int(_field(charge, "amount_refunded", 0)),
            created=int(_field(charge, "created", 0)),
            currency=_field(charge, "currency", ""),
            status=_field(charge, "status", ""),
            description=_field(charge, "description", ""),
            customer_id=customer_id,
            customer_email=_field(customer, "email", "") or _field(_field(charge, "billing_details"), "email", ""),
            customer_created=_field(customer, "created"),
        )

    def to_dict(self):
        return asdict(self)

class PaymentsClient:
    """Stripe Connect calls made on behalf of linked accounts.

    The platform key is read from the secret cache on every call, so the
    client itself can be built at import time before any secret is fetched.
    Account-scoped calls always carry ``stripe_account`` so they never hit the
    platform's own ledger.
    """

    def __init__(self, secrets):
        self._secrets = secrets

    def _api_key(self):
        return self._secrets.get_secret()

    def exchange_authorization_code(self, code):
        try:
            response = stripe.OAuth.token(grant_type="authorization_code", code=code, api_key=self._api_key())
        except stripe.StripeError as e:
            raise OAuthExchangeError(f"Stripe OAuth token exchange failed: {e}") from e
        account_id = _field(response, "stripe_user_id")
        if not account_id:
            raise OAuthExchangeError("Stripe OAuth response did not include a connected account id")
        return account_id

    def retrieve_account(self, account_id) -> LinkedAccount:
        account = stripe.Account.retrieve(account_id, api_key=self._api_key())
        return LinkedAccount.from_stripe(account)

    def iter_charges(self, account_id, created_after, created_before_or_equal, page_size=100) -> Iterator[ChargeRecord]:
        """Yield every charge created in ``[created_after, created_before_or_equal]``.

        Pages are requested one after another using the last id of the previous
        page as the cursor. Each call to this method starts from the newest
        charge again; there is no resuming across calls.
        """
        logger = structlog.get_logger()
        cursor = None
        pages = 0
        while True:
            params = {
                "created": {"gte": int(created_after), "lte": int(created_before_or_equal)},
                "limit": page_size,
                "expand": ["data.customer"],
            }
            if cursor:
                params["starting_after"] = cursor
            page = stripe.Charge.list(**params, api_key=self._api_key(), stripe_account=account_id)
            pages += 1
            data = list(_field(page, "data", []))
            for charge in data:
                yield ChargeRecord.from_stripe(charge)
            if not data or not _field(page, "has_more", False):
                break
            cursor = _field(data[-1], "id")
        logger.info("charges_listed", account_id=account_id, pages=pages)

    def list_charges(self, account_id, created_after, created_before_or_equal, page_size=100) -> List[ChargeRecord]:
        return list(self.iter_charges(account_id, created_after, created_before_or_equal, page_size))

    def list_payouts(self, account_id, limit=10):
        payouts = stripe.Payout.list(limit=limit, api_key=self._api_key(), stripe_account=account_id)
        return [_to_plain(p) for p in _field(payouts, "data", [])]

    def get_balance(self, account_id):
        balance = stripe.Balance.retrieve(api_key=self._api_key(), stripe_account=account_id)
        return _to_plain(balance)

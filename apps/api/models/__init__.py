"""Models package."""

from .user import User
from .coin_transaction import CoinTransaction
from .payment_order import PaymentOrder
from .processed_payment import ProcessedPayment
from .analytics_event import AnalyticsEvent

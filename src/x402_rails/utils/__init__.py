from .factories import NotificationFactory, PaymentFactory

__all__ = ["NotificationFactory", "PaymentFactory"]

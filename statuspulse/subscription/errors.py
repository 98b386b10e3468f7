"""
Subscription error hierarchy

Lifecycle operations raise these to their caller; the web layer maps them to
HTTP responses. Dispatch never raises them past its own boundary.
"""

from typing import Iterable


class SubscriptionError(Exception):
    """Base class for subscription failures"""


# validation

class InvalidComponentsError(SubscriptionError):
    """Component ids that do not belong to the subscription's page"""

    def __init__(self, component_ids: Iterable[int]):
        self.component_ids = list(component_ids)
        super().__init__(f"Invalid components: {', '.join(str(i) for i in self.component_ids)}")


class InvalidChannelConfigError(SubscriptionError):
    """Channel identity or configuration rejected by the channel"""


# not found

class SubscriptionNotFoundError(SubscriptionError):
    """Unknown token, or token presented on the wrong domain"""

    def __init__(self, message: str = "Subscription not found"):
        super().__init__(message)


class PageNotFoundError(SubscriptionNotFoundError):
    def __init__(self, page_id: int):
        self.page_id = page_id
        super().__init__(f"Page {page_id} not found")


# state conflicts

class SubscriptionStateError(SubscriptionError):
    """Operation not allowed in the subscription's current state"""


class SubscriptionExpiredError(SubscriptionStateError):
    def __init__(self, message: str = "Verification token expired"):
        super().__init__(message)


class SubscriptionNotVerifiedError(SubscriptionStateError):
    def __init__(self, message: str = "Subscription not yet verified"):
        super().__init__(message)


class SubscriptionUnsubscribedError(SubscriptionStateError):
    def __init__(self, message: str = "Subscription is unsubscribed"):
        super().__init__(message)


class SubscriptionAlreadyVerifiedError(SubscriptionStateError):
    def __init__(self, message: str = "Subscription already verified"):
        super().__init__(message)


class SubscriptionConflictError(SubscriptionStateError):
    """Concurrent writers raced on the same identity and page"""


# delivery

class ChannelDeliveryError(SubscriptionError):
    """Timeout, non-2xx response or transport error while sending"""

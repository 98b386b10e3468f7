from .client import EmailClient, EmailRecipient

__all__ = ["EmailClient", "EmailRecipient"]

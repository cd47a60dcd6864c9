"""HTTP clients for the notification gateways."""

from task_market_service.clients.email_client import EmailClient
from task_market_service.clients.sms_client import SmsClient

__all__ = ["EmailClient", "SmsClient"]

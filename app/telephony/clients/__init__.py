"""Telephony provider clients"""

from app.telephony.clients.base import ConnectionNotFoundError, TelephonyClient, TelephonyError
from app.telephony.clients.fake import FakeTelephonyClient
from app.telephony.clients.twilio import TwilioTelephonyClient

__all__ = [
    "ConnectionNotFoundError",
    "TelephonyClient",
    "TelephonyError",
    "FakeTelephonyClient",
    "TwilioTelephonyClient",
]

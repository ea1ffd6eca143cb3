"""Telephony control-plane integration"""

from app.telephony.gateway import AnswerResult, TelephonyGateway, get_telephony_gateway

__all__ = ["AnswerResult", "TelephonyGateway", "get_telephony_gateway"]

"""Base telephony control-plane client interface"""

from abc import ABC, abstractmethod


class TelephonyError(Exception):
    """The control plane rejected an operation"""

    def __init__(self, message: str, code: str = ""):
        super().__init__(message)
        self.code = code


class ConnectionNotFoundError(TelephonyError):
    """The call connection no longer exists at the control plane"""


class TelephonyClient(ABC):
    """Abstract base class for telephony control planes"""

    name = "base"

    @abstractmethod
    async def answer(self, incoming_context: str, callback_url: str) -> str:
        """Answer an inbound call and return its external connection id"""
        pass

    @abstractmethod
    async def transfer_to_identity(self, connection_id: str, identity: str) -> None:
        """Hand a connected call to an agent's own telephony session"""
        pass

    @abstractmethod
    async def hangup(self, connection_id: str, for_everyone: bool = True) -> None:
        """End a connected call"""
        pass

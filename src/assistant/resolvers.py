"""Resolve which account and which ledger a message applies to."""

from typing import Mapping, Optional

from ..config.settings import ChatIdentity
from ..memory.manager import LedgerSelection


class AccountResolver:
    """Map a free-text account hint to a configured account id."""

    def __init__(
        self,
        accounts: Mapping[str, str],
        default_account_id: Optional[str] = None,
    ) -> None:
        self._accounts = dict(accounts)
        self._default = default_account_id

    def resolve(self, hint: Optional[str]) -> Optional[str]:
        """First keyword found (case-insensitive substring) in the hint wins.

        Falls back to the default account, which may be None.
        """
        if hint and hint.strip():
            lowered = hint.lower()
            for keyword, account_id in self._accounts.items():
                if keyword.lower() in lowered:
                    return account_id
        return self._default


class LedgerContextResolver:
    """Active ledger of a chat: the /setledger override or the configured default."""

    def __init__(self, selection: LedgerSelection) -> None:
        self._selection = selection

    async def resolve(self, chat_id: int, identity: ChatIdentity) -> str:
        override = await self._selection.get(chat_id)
        return override or identity.ledger_id

    async def switch(self, chat_id: int, ledger_id: str) -> None:
        await self._selection.set(chat_id, ledger_id)

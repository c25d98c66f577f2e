"""
Coin ledger client.

Balance mutations are single calls to server-side procedures; the client
never computes a new balance itself and re-reads it after every change.
"""
from typing import Optional

from rumori.backend import Backend, decode_one
from rumori.exceptions import (
    ConflictError, InsufficientBalanceError, NotFoundError, RumoriError, ValidationError,
)
from rumori.logger import get_logger
from rumori.models import CoinBalance
from rumori.session import SessionProvider
from rumori.state import COIN_BALANCE, StateStore

logger = get_logger("coin_service")

EARN_PROCEDURE = "earn_coins"
SPEND_PROCEDURE = "spend_coins"


def validate_amount(amount: int) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError("Coin amount must be a positive whole number")
    return amount


class CoinService:
    """Reads and mutates the ``user_coins`` balance of the current user."""

    def __init__(self, backend: Backend, session: SessionProvider, state: StateStore):
        self.backend = backend
        self.session = session
        self.state = state

    @property
    def balance(self) -> Optional[int]:
        """Last fetched balance, ``None`` before the first fetch."""
        return self.state.get(COIN_BALANCE)

    async def _select_balance(self, user_id: str) -> int:
        response = await self.backend.read(
            lambda: self.backend.table("user_coins").select("balance")
            .eq("user_id", user_id)
            .single()
            .execute(),
            name="fetch_balance",
        )
        return decode_one(CoinBalance, response.data).balance

    async def fetch_balance(self) -> int:
        """Current balance; a missing row is created at zero."""
        user_id = self.session.require_user_id()
        try:
            balance = await self._select_balance(user_id)
        except NotFoundError:
            logger.info(f"No balance record for {user_id}, creating one")
            balance = await self._create_initial_balance(user_id)
        self.state.set(COIN_BALANCE, balance)
        return balance

    async def _create_initial_balance(self, user_id: str) -> int:
        try:
            await self.backend.write(
                lambda: self.backend.table("user_coins").insert(
                    {"user_id": user_id, "balance": 0}
                ).execute(),
                name="create_initial_balance",
            )
        except ConflictError:
            logger.warning(f"Balance record for {user_id} was created concurrently, re-reading")
            return await self._select_balance(user_id)
        return 0

    async def _transact(self, procedure: str, amount: int, project_id: str,
                        description: str) -> Optional[int]:
        user_id = self.session.require_user_id()
        amount = validate_amount(amount)
        params = {
            "p_user_id": user_id,
            "p_amount": amount,
            "p_project_id": project_id,
            "p_description": description,
        }
        logger.info(f"Calling {procedure} for {user_id}: {amount} coin(s) on project {project_id}")
        response = await self.backend.write(
            lambda: self.backend.client.rpc(procedure, params).execute(),
            name=procedure,
        )
        if getattr(response, "data", None) is False:
            raise InsufficientBalanceError("Not enough coins")
        # The procedure has committed by now
        try:
            balance = await self.fetch_balance()
        except RumoriError as e:
            logger.warning(f"{procedure} succeeded but the balance could not be re-read: {e.message}")
            self.state.clear(COIN_BALANCE)
            return None
        logger.info(f"Balance updated to: {balance}")
        return balance

    async def earn_coins(self, amount: int, project_id: str, description: str) -> Optional[int]:
        """Credit coins through the ``earn_coins`` procedure.

        Returns the new balance, or ``None`` when the credit went through but
        the balance could not be read back.
        """
        return await self._transact(EARN_PROCEDURE, amount, project_id, description)

    async def spend_coins(self, amount: int, project_id: str, description: str) -> Optional[int]:
        """Debit coins through the ``spend_coins`` procedure; returns the new balance
        or ``None`` when it could not be read back.

        Raises ``InsufficientBalanceError`` when the server refuses the spend.
        """
        return await self._transact(SPEND_PROCEDURE, amount, project_id, description)

"""Scaled-balance accounting shared by deposit and debt receipts.

Each holder stores a balance divided by the index at the time of the last
touch. The real balance is ``scaled_balance * current_index``, so balances
grow with the reserve index without any per-holder write on accrual.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Iterator

from lendcore.protocol.errors import (
    InvalidBurnAmount,
    InvalidMintAmount,
    ScaledBalanceUnderflow,
)
from lendcore.protocol.events import Burn, Mint, Transfer
from lendcore.protocol.wad_ray_math import ray_div, ray_mul

logger = logging.getLogger(__name__)


@dataclass
class ScaledBalanceAccount:
    """One holder's position in one token."""

    scaled_balance: int = 0
    index_at_last_update: int = 0


@dataclass(eq=False)
class UndoJournal:
    """Prior state of every holder first touched while the journal is open.

    ``None`` marks a holder that had no account when it was first touched.
    """

    scaled_total_supply: int
    accounts: dict[str, ScaledBalanceAccount | None] = field(default_factory=dict)


class ScaledBalanceToken:
    """Scaled-balance token base.

    Parameters
    ----------
    name, symbol : str
        Token identity; ``symbol`` tags every emitted event.
    underlying_asset : str
        Reserve asset this token accounts for.
    index_source : Callable[[], int]
        Returns the reserve index projected to now, used by balance views.
    emit : Callable[[object], None]
        Event sink.
    """

    def __init__(
        self,
        name: str,
        symbol: str,
        underlying_asset: str,
        index_source: Callable[[], int],
        emit: Callable[[object], None],
    ) -> None:
        self.name = name
        self.symbol = symbol
        self.underlying_asset = underlying_asset
        self._index_source = index_source
        self._emit = emit
        self._accounts: dict[str, ScaledBalanceAccount] = {}
        self._scaled_total_supply = 0
        self._journals: list[UndoJournal] = []

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def scaled_balance_of(self, user: str) -> int:
        account = self._accounts.get(user)
        return account.scaled_balance if account is not None else 0

    def scaled_total_supply(self) -> int:
        return self._scaled_total_supply

    def get_scaled_user_balance_and_supply(self, user: str) -> tuple[int, int]:
        return self.scaled_balance_of(user), self._scaled_total_supply

    def get_previous_index(self, user: str) -> int:
        account = self._accounts.get(user)
        return account.index_at_last_update if account is not None else 0

    def balance_of(self, user: str) -> int:
        return ray_mul(self.scaled_balance_of(user), self._index_source())

    def total_supply(self) -> int:
        return ray_mul(self._scaled_total_supply, self._index_source())

    def holders(self) -> Iterator[tuple[str, ScaledBalanceAccount]]:
        """Iterate holders with a non-zero scaled balance."""
        for user, account in self._accounts.items():
            if account.scaled_balance:
                yield user, account

    # ------------------------------------------------------------------
    # Scaled mutations
    # ------------------------------------------------------------------

    def _account(self, user: str) -> ScaledBalanceAccount:
        """Return the account about to be written, journaling its prior state."""
        account = self._accounts.get(user)
        for journal in self._journals:
            if user not in journal.accounts:
                journal.accounts[user] = replace(account) if account is not None else None
        if account is None:
            account = self._accounts[user] = ScaledBalanceAccount()
        return account

    @staticmethod
    def _balance_increase(account: ScaledBalanceAccount, index: int) -> int:
        """Interest earned since the holder's last touch."""
        scaled = account.scaled_balance
        return ray_mul(scaled, index) - ray_mul(scaled, account.index_at_last_update)

    def mint_scaled(
        self,
        on_behalf_of: str,
        amount: int,
        index: int,
        caller: str | None = None,
    ) -> bool:
        """Mint ``amount`` (real units) at ``index``.

        Returns:
            True if the holder had no scaled balance before the mint.

        Raises:
            InvalidMintAmount: if ``amount`` scales to zero.
        """
        amount_scaled = ray_div(amount, index)
        if amount_scaled == 0:
            raise InvalidMintAmount(f"{self.symbol}: {amount} scales to zero at index {index}")

        account = self._account(on_behalf_of)
        scaled_balance = account.scaled_balance
        balance_increase = self._balance_increase(account, index)

        account.index_at_last_update = index
        account.scaled_balance = scaled_balance + amount_scaled
        self._scaled_total_supply += amount_scaled

        amount_to_mint = amount + balance_increase
        self._emit(Transfer(self.symbol, None, on_behalf_of, amount_to_mint))
        self._emit(
            Mint(
                token=self.symbol,
                caller=caller if caller is not None else on_behalf_of,
                on_behalf_of=on_behalf_of,
                value=amount_to_mint,
                balance_increase=balance_increase,
                index=index,
            )
        )
        return scaled_balance == 0

    def burn_scaled(
        self,
        user: str,
        amount: int,
        index: int,
        target: str | None = None,
    ) -> None:
        """Burn ``amount`` (real units) at ``index``.

        When the interest accrued since the last touch exceeds ``amount``
        the holder's real balance still grows, so the net effect is reported
        as a mint of the difference.

        Raises:
            InvalidBurnAmount: if ``amount`` scales to zero.
            ScaledBalanceUnderflow: if the holder's scaled balance is too low.
        """
        amount_scaled = ray_div(amount, index)
        if amount_scaled == 0:
            raise InvalidBurnAmount(f"{self.symbol}: {amount} scales to zero at index {index}")

        scaled_balance = self.scaled_balance_of(user)
        if amount_scaled > scaled_balance:
            raise ScaledBalanceUnderflow(
                f"{self.symbol}: burning {amount_scaled} scaled from {user} holding {scaled_balance}"
            )
        account = self._account(user)
        balance_increase = self._balance_increase(account, index)

        account.index_at_last_update = index
        account.scaled_balance = scaled_balance - amount_scaled
        self._scaled_total_supply -= amount_scaled

        if balance_increase > amount:
            amount_to_mint = balance_increase - amount
            self._emit(Transfer(self.symbol, None, user, amount_to_mint))
            self._emit(
                Mint(
                    token=self.symbol,
                    caller=user,
                    on_behalf_of=user,
                    value=amount_to_mint,
                    balance_increase=balance_increase,
                    index=index,
                )
            )
        else:
            amount_to_burn = amount - balance_increase
            self._emit(Transfer(self.symbol, user, None, amount_to_burn))
            self._emit(
                Burn(
                    token=self.symbol,
                    sender=user,
                    target=target,
                    value=amount_to_burn,
                    balance_increase=balance_increase,
                    index=index,
                )
            )

    def transfer_scaled(
        self,
        sender: str,
        recipient: str,
        amount: int,
        index: int,
        caller: str | None = None,
    ) -> None:
        """Move ``amount`` (real units) between holders at ``index``.

        Interest accrued by each side since its own last touch is realized
        (and reported as a mint) before the move; a self-transfer reports it
        once.
        """
        amount_scaled = ray_div(amount, index)
        sender_scaled_balance = self.scaled_balance_of(sender)
        if amount_scaled > sender_scaled_balance:
            raise ScaledBalanceUnderflow(
                f"{self.symbol}: transferring {amount_scaled} scaled from {sender} "
                f"holding {sender_scaled_balance}"
            )
        sender_account = self._account(sender)
        recipient_account = self._account(recipient)

        sender_balance_increase = self._balance_increase(sender_account, index)
        recipient_balance_increase = self._balance_increase(recipient_account, index)

        sender_account.index_at_last_update = index
        recipient_account.index_at_last_update = index
        sender_account.scaled_balance -= amount_scaled
        recipient_account.scaled_balance += amount_scaled

        caller = caller if caller is not None else sender
        if sender_balance_increase > 0:
            self._emit(Transfer(self.symbol, None, sender, sender_balance_increase))
            self._emit(
                Mint(
                    token=self.symbol,
                    caller=caller,
                    on_behalf_of=sender,
                    value=sender_balance_increase,
                    balance_increase=sender_balance_increase,
                    index=index,
                )
            )
        if sender != recipient and recipient_balance_increase > 0:
            self._emit(Transfer(self.symbol, None, recipient, recipient_balance_increase))
            self._emit(
                Mint(
                    token=self.symbol,
                    caller=caller,
                    on_behalf_of=recipient,
                    value=recipient_balance_increase,
                    balance_increase=recipient_balance_increase,
                    index=index,
                )
            )
        self._emit(Transfer(self.symbol, sender, recipient, amount))

    # ------------------------------------------------------------------
    # Transaction support
    # ------------------------------------------------------------------

    def open_journal(self) -> UndoJournal:
        """Start recording the holders this token writes from now on.

        Cost is proportional to the holders touched, not to all holders.
        """
        journal = UndoJournal(scaled_total_supply=self._scaled_total_supply)
        self._journals.append(journal)
        return journal

    def close_journal(self, journal: UndoJournal) -> None:
        self._journals = [j for j in self._journals if j is not journal]

    def rollback(self, journal: UndoJournal) -> None:
        """Put every holder in ``journal`` back as it was when it opened."""
        self.close_journal(journal)
        for user, account in journal.accounts.items():
            if account is None:
                self._accounts.pop(user, None)
            else:
                self._accounts[user] = replace(account)
        self._scaled_total_supply = journal.scaled_total_supply

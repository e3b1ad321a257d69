"""Interest-bearing deposit receipt, scaled by the reserve liquidity index."""

from __future__ import annotations

from typing import Callable

from lendcore.protocol.events import BalanceTransfer
from lendcore.protocol.wad_ray_math import ray_div
from lendcore.tokens.scaled_balance_token import ScaledBalanceToken


class AToken(ScaledBalanceToken):
    """Deposit receipt whose balance tracks the reserve's normalized income."""

    def __init__(
        self,
        underlying_asset: str,
        treasury: str,
        index_source: Callable[[], int],
        emit: Callable[[object], None],
    ) -> None:
        super().__init__(
            name=f"Aave interest bearing {underlying_asset}",
            symbol=f"a{underlying_asset}",
            underlying_asset=underlying_asset,
            index_source=index_source,
            emit=emit,
        )
        self.treasury = treasury

    def mint(self, caller: str, on_behalf_of: str, amount: int, index: int) -> bool:
        """Mint receipts for a supply; returns True on the holder's first supply."""
        return self.mint_scaled(on_behalf_of, amount, index, caller=caller)

    def burn(self, user: str, receiver_of_underlying: str, amount: int, index: int) -> None:
        self.burn_scaled(user, amount, index, target=receiver_of_underlying)

    def mint_to_treasury(self, amount: int, index: int) -> None:
        if amount == 0:
            return
        self.mint_scaled(self.treasury, amount, index)

    def transfer_on_liquidation(self, sender: str, recipient: str, amount: int, index: int) -> None:
        self._transfer(sender, recipient, amount, index)

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        """Holder-to-holder transfer at the current normalized income."""
        self._transfer(sender, recipient, amount, self._index_source())

    def _transfer(self, sender: str, recipient: str, amount: int, index: int) -> None:
        self.transfer_scaled(sender, recipient, amount, index)
        self._emit(
            BalanceTransfer(
                token=self.symbol,
                sender=sender,
                recipient=recipient,
                value=ray_div(amount, index),
                index=index,
            )
        )

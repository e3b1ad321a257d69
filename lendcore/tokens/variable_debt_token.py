"""Variable-rate debt receipt, scaled by the reserve variable borrow index."""

from __future__ import annotations

from typing import Callable

from lendcore.protocol.errors import OperationNotSupported
from lendcore.tokens.scaled_balance_token import ScaledBalanceToken


class VariableDebtToken(ScaledBalanceToken):
    """Non-transferable debt receipt."""

    def __init__(
        self,
        underlying_asset: str,
        index_source: Callable[[], int],
        emit: Callable[[object], None],
    ) -> None:
        super().__init__(
            name=f"Aave variable debt bearing {underlying_asset}",
            symbol=f"variableDebt{underlying_asset}",
            underlying_asset=underlying_asset,
            index_source=index_source,
            emit=emit,
        )

    def mint(self, user: str, on_behalf_of: str, amount: int, index: int) -> tuple[bool, int]:
        """Mint debt for a borrow.

        Returns:
            Tuple of (is_first_borrow, scaled_total_supply after the mint).
        """
        is_first_borrow = self.mint_scaled(on_behalf_of, amount, index, caller=user)
        return is_first_borrow, self.scaled_total_supply()

    def burn(self, user: str, amount: int, index: int) -> int:
        """Burn debt for a repayment; returns the new scaled total supply."""
        self.burn_scaled(user, amount, index)
        return self.scaled_total_supply()

    def balance_of(self, user: str) -> int:
        if self.scaled_balance_of(user) == 0:
            return 0
        return super().balance_of(user)

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        raise OperationNotSupported("variable debt is not transferable")

    def approve(self, spender: str, amount: int) -> None:
        raise OperationNotSupported("variable debt cannot be approved")

    def allowance(self, owner: str, spender: str) -> int:
        raise OperationNotSupported("variable debt has no allowance")

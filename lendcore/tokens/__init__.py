"""Scaled-balance receipt tokens."""

from lendcore.tokens.a_token import AToken
from lendcore.tokens.scaled_balance_token import ScaledBalanceAccount, ScaledBalanceToken
from lendcore.tokens.variable_debt_token import VariableDebtToken

__all__ = ["AToken", "ScaledBalanceAccount", "ScaledBalanceToken", "VariableDebtToken"]

from privault.token.store import BalanceStore, Token, check_amount, check_domain

__all__ = ["BalanceStore", "Token", "check_amount", "check_domain"]

from privault.vault.ledger import TokenizedVault
from privault.vault.settlement import SettlementCoordinator

__all__ = ["SettlementCoordinator", "TokenizedVault"]

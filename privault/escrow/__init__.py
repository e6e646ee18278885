from privault.escrow.escrow import ClawbackEscrow, ClawbackRecord, Escrow

__all__ = ["ClawbackEscrow", "ClawbackRecord", "Escrow"]

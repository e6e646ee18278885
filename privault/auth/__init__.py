from privault.auth.guard import AccessGuard, AuthIntent, AuthVerdict, AuthWitness

__all__ = ["AccessGuard", "AuthIntent", "AuthVerdict", "AuthWitness"]

from __future__ import annotations

from typing import Mapping


class ValidationError(ValueError):
    """
    Input non valido, rilevato prima di qualunque scrittura.
    `errors` mappa il nome del campo al primo messaggio per quel campo.
    """

    def __init__(self, errors: Mapping[str, str]):
        self.errors: dict[str, str] = dict(errors)
        summary = "; ".join(f"{field}: {msg}" for field, msg in self.errors.items())
        super().__init__(summary or "Invalid input")


class PersistenceError(RuntimeError):
    """Errore opaco del gateway (rete, vincoli, tabella sconosciuta)."""


class ConfigError(ValueError):
    pass

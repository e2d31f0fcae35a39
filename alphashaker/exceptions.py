"""Error kinds raised by the validation core.

Integrity violations and store failures abort a run. Expected absences
(no alternative site, no spectrum) are returned as ``None`` by the
functions concerned and never raised.
"""


class AlphaShakerError(Exception):
    """Base class for all errors raised by alphashaker."""


class StoreError(AlphaShakerError):
    """The identification store failed to read or write a match."""


class MissingMatchError(StoreError, KeyError):
    """A key was requested that the identification store does not hold."""

    def __init__(self, key: str):
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"No match stored under key {self.key!r}"


class DuplicateFirstHitError(AlphaShakerError):
    """More than one first hit was attached for one advocate on one spectrum."""

    def __init__(self, spectrum_key: str, advocate: int):
        super().__init__(
            f"Spectrum {spectrum_key!r} already holds a first hit for advocate {advocate}"
        )
        self.spectrum_key = spectrum_key
        self.advocate = advocate

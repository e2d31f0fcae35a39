"""Identification store with a bounded cache and explicit commits.

Matches are addressed by opaque string keys. Mutating a match requires an
explicit ``set_match_changed`` followed by ``flush``: the store never writes
a match behind the caller's back. Clean matches beyond ``cache_size`` are
evicted from memory and read back from the spill directory on demand; dirty
matches stay pinned in memory until the next ``flush``.

Match parameters are small and always kept in memory.

Examples
--------
>>> store = IdentificationStore(cache_size=10_000, spill_directory="matches")
>>> store.add_spectrum_match(spectrum_match)
>>> match = store.get_spectrum_match(spectrum_match.key)
>>> match.best_assumption = assumption
>>> store.set_match_changed(match)
>>> store.flush()
"""

import hashlib
import logging
import pickle
from collections import OrderedDict
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..exceptions import MissingMatchError, StoreError
from .match_parameter import MatchParameter
from .matches import PeptideMatch, ProteinMatch, SpectrumMatch

logger = logging.getLogger(__name__)

SPECTRUM, PEPTIDE, PROTEIN = "spectrum", "peptide", "protein"


class IdentificationStore:
    """Key-addressed storage of spectrum, peptide and protein matches.

    Parameters
    ----------
    cache_size : int, optional
        Maximal number of clean matches kept in memory. None keeps everything.
    spill_directory : str or Path, optional
        Directory receiving evicted matches. Required when ``cache_size`` is set.
    """

    def __init__(
        self,
        cache_size: Optional[int] = None,
        spill_directory: Optional[Union[str, Path]] = None,
    ):
        if cache_size is not None and spill_directory is None:
            raise ValueError("A spill directory is required for a bounded cache")
        if cache_size is not None and cache_size < 1:
            raise ValueError(f"cache_size must be positive, got {cache_size}")

        self.cache_size = cache_size
        self.spill_directory = Path(spill_directory) if spill_directory is not None else None
        if self.spill_directory is not None:
            self.spill_directory.mkdir(parents=True, exist_ok=True)

        # key -> kind, insertion ordered per kind
        self._keys: Dict[str, Dict[str, None]] = {SPECTRUM: {}, PEPTIDE: {}, PROTEIN: {}}
        self._kinds: Dict[str, str] = {}
        self._cache: "OrderedDict[str, object]" = OrderedDict()
        self._dirty: set = set()
        self._on_disk: set = set()
        self._parameters: Dict[str, MatchParameter] = {}

    # -------------------------------------------------------------------------
    # Enumeration
    # -------------------------------------------------------------------------

    def spectrum_keys(self) -> List[str]:
        return list(self._keys[SPECTRUM])

    def peptide_keys(self) -> List[str]:
        return list(self._keys[PEPTIDE])

    def protein_keys(self) -> List[str]:
        return list(self._keys[PROTEIN])

    def __contains__(self, key: str) -> bool:
        return key in self._kinds

    # -------------------------------------------------------------------------
    # Matches
    # -------------------------------------------------------------------------

    def add_spectrum_match(self, match: SpectrumMatch) -> None:
        self._add(match, SPECTRUM)

    def add_peptide_match(self, match: PeptideMatch) -> None:
        self._add(match, PEPTIDE)

    def add_protein_match(self, match: ProteinMatch) -> None:
        self._add(match, PROTEIN)

    def get_spectrum_match(self, key: str) -> SpectrumMatch:
        return self._get(key, SPECTRUM)

    def get_peptide_match(self, key: str) -> PeptideMatch:
        return self._get(key, PEPTIDE)

    def get_protein_match(self, key: str) -> ProteinMatch:
        return self._get(key, PROTEIN)

    def set_match_changed(self, match) -> None:
        """Mark a match as modified; it is written at the next ``flush``."""
        if match.key not in self._kinds:
            raise MissingMatchError(match.key)
        self._cache[match.key] = match
        self._cache.move_to_end(match.key)
        self._dirty.add(match.key)

    def remove_match(self, key: str) -> None:
        """Remove a match and its parameter."""
        kind = self._kinds.pop(key, None)
        if kind is None:
            raise MissingMatchError(key)
        del self._keys[kind][key]
        self._cache.pop(key, None)
        self._dirty.discard(key)
        self._parameters.pop(key, None)
        if key in self._on_disk:
            self._on_disk.discard(key)
            try:
                self._path(key).unlink()
            except OSError as e:
                raise StoreError(f"Could not delete stored match {key!r}: {e}") from e

    def flush(self) -> int:
        """Commit all dirty matches and trim the cache.

        Returns
        -------
        int
            Number of matches committed
        """
        n_committed = len(self._dirty)
        if self.spill_directory is not None:
            for key in list(self._dirty):
                self._write(key, self._cache[key])
        self._dirty.clear()
        self._trim()
        return n_committed

    # -------------------------------------------------------------------------
    # Match parameters
    # -------------------------------------------------------------------------

    def add_match_parameter(self, key: str, parameter: MatchParameter) -> None:
        """Attach (or replace) the parameter of a stored match."""
        if key not in self._kinds:
            raise MissingMatchError(key)
        self._parameters[key] = parameter

    def get_match_parameter(self, key: str) -> MatchParameter:
        try:
            return self._parameters[key]
        except KeyError:
            raise MissingMatchError(key) from None

    def has_match_parameter(self, key: str) -> bool:
        return key in self._parameters

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _add(self, match, kind: str) -> None:
        if match.key in self._kinds:
            raise ValueError(f"Match already stored: {match.key!r}")
        self._kinds[match.key] = kind
        self._keys[kind][match.key] = None
        self._cache[match.key] = match
        self._dirty.add(match.key)

    def _get(self, key: str, kind: str):
        if self._kinds.get(key) != kind:
            raise MissingMatchError(key)
        match = self._cache.get(key)
        if match is None:
            match = self._read(key)
            self._cache[key] = match
            self._trim()
        else:
            self._cache.move_to_end(key)
        return match

    def _trim(self) -> None:
        if self.cache_size is None:
            return
        for key in list(self._cache):
            if len(self._cache) <= self.cache_size:
                break
            if key in self._dirty:
                continue
            if key not in self._on_disk:
                self._write(key, self._cache[key])
            del self._cache[key]

    def _path(self, key: str) -> Path:
        digest = hashlib.sha1(key.encode("utf-8")).hexdigest()
        return self.spill_directory / f"{digest}.pkl"

    def _write(self, key: str, match) -> None:
        try:
            with open(self._path(key), "wb") as f:
                pickle.dump(match, f, protocol=pickle.HIGHEST_PROTOCOL)
        except (OSError, pickle.PicklingError) as e:
            raise StoreError(f"Could not write match {key!r}: {e}") from e
        self._on_disk.add(key)

    def _read(self, key: str):
        if key not in self._on_disk:
            raise StoreError(f"Match {key!r} is neither cached nor stored")
        try:
            with open(self._path(key), "rb") as f:
                return pickle.load(f)
        except (OSError, pickle.UnpicklingError, EOFError) as e:
            raise StoreError(f"Could not read match {key!r}: {e}") from e

"""Modified b/y fragment generation and peak matching (Numba-compiled).

Kernels used by the localization score to compare the fragment ions of
alternative modification site assignments with an observed spectrum.

Modifications are passed to the kernels as a ``(n_mods, 2)`` float array
where each row is ``[0-based residue index, mass shift]``.

Examples
--------
>>> peptide_ord = encode_peptide_to_ord("PEPSTIDEK")
>>> mods = np.array([[3.0, PHOSPHO_MASS]])
>>> mz = generate_modified_by_ions(peptide_ord, mods, 2, (0, 1), (1, 2))
>>> keep = select_top_peaks(spectrum_mz, spectrum_intensity, depth=4)
>>> n_matched = count_matched_ions(mz, spectrum_mz[keep], 20.0)
"""

from __future__ import annotations
from typing import List, Tuple

import numpy as np
import numba

from ..constants import AA_MASSES, H2O_MASS, PROTON_MASS


def encode_peptide_to_ord(sequence: str) -> np.ndarray:
    """Encode a peptide sequence as ord() values for the kernels."""
    return np.array([ord(aa) for aa in sequence], dtype=np.uint8)


def modifications_to_array(modifications: List[Tuple[int, float]]) -> np.ndarray:
    """Convert ``(1-based site, mass shift)`` pairs to the kernel layout."""
    if not modifications:
        return np.zeros((0, 2), dtype=np.float64)
    result = np.zeros((len(modifications), 2), dtype=np.float64)
    for i, (site, mass) in enumerate(modifications):
        result[i, 0] = site - 1
        result[i, 1] = mass
    return result


@numba.jit(nopython=True, cache=True)
def generate_modified_by_ions(
    peptide_ord: np.ndarray,
    modifications: np.ndarray,
    precursor_charge: int,
    fragment_types: Tuple[int, ...] = (0, 1),
    fragment_charges: Tuple[int, ...] = (1, 2),
) -> np.ndarray:
    """Generate the sorted m/z values of modified b/y fragment ions.

    Parameters
    ----------
    peptide_ord : np.ndarray (uint8)
        Peptide sequence as ord() values
    modifications : np.ndarray (float64)
        Shape (n_mods, 2), each row ``[0-based index, mass shift]``
    precursor_charge : int
        Fragment charges above ``max(1, precursor_charge - 1)`` are skipped
    fragment_types : tuple of int
        0=b, 1=y
    fragment_charges : tuple of int
        Fragment charge states

    Returns
    -------
    np.ndarray (float64)
        Fragment m/z values sorted ascending
    """
    peptide_length = len(peptide_ord)
    n_positions = peptide_length - 1
    max_charge = max(1, precursor_charge - 1)

    residue_masses = np.empty(peptide_length, dtype=np.float64)
    for i in range(peptide_length):
        residue_masses[i] = AA_MASSES[peptide_ord[i]]
    for j in range(len(modifications)):
        index = int(modifications[j, 0])
        if 0 <= index < peptide_length:
            residue_masses[index] += modifications[j, 1]

    # prefix[i] = mass of residues 0..i
    prefix = np.cumsum(residue_masses)
    total = prefix[peptide_length - 1]

    fragment_mz = np.empty(
        max(n_positions, 0) * len(fragment_types) * len(fragment_charges), dtype=np.float64
    )
    idx = 0
    for frag_type in fragment_types:
        for position in range(1, n_positions + 1):
            if frag_type == 0:
                fragment_mass = prefix[position - 1]
            elif frag_type == 1:
                fragment_mass = total - prefix[peptide_length - position - 1] + H2O_MASS
            else:
                continue
            for charge in fragment_charges:
                if charge > max_charge:
                    continue
                fragment_mz[idx] = (fragment_mass + charge * PROTON_MASS) / charge
                idx += 1

    return np.sort(fragment_mz[:idx])


@numba.jit(nopython=True, cache=True)
def select_top_peaks(
    spectrum_mz: np.ndarray,
    spectrum_intensity: np.ndarray,
    depth: int,
    window: float = 100.0,
) -> np.ndarray:
    """Keep the ``depth`` most intense peaks of every m/z window.

    Parameters
    ----------
    spectrum_mz : np.ndarray
        Sorted m/z values
    spectrum_intensity : np.ndarray
        Intensities parallel to ``spectrum_mz``
    depth : int
        Peaks kept per window
    window : float
        Window width in Th

    Returns
    -------
    np.ndarray (bool)
        Mask of the kept peaks
    """
    n = len(spectrum_mz)
    keep = np.zeros(n, dtype=np.bool_)
    start = 0
    while start < n:
        window_index = np.floor(spectrum_mz[start] / window)
        end = start
        while end < n and np.floor(spectrum_mz[end] / window) == window_index:
            end += 1
        order = np.argsort(-spectrum_intensity[start:end], kind="mergesort")
        for k in range(min(depth, end - start)):
            keep[start + order[k]] = True
        start = end
    return keep


@numba.jit(nopython=True, cache=True)
def count_matched_ions(
    theoretical_mz: np.ndarray,
    spectrum_mz: np.ndarray,
    tol_ppm: float,
) -> int:
    """Number of theoretical ions with a peak within ``tol_ppm``.

    ``spectrum_mz`` must be sorted ascending.
    """
    n = len(spectrum_mz)
    n_matched = 0
    if n == 0:
        return 0
    for i in range(len(theoretical_mz)):
        target = theoretical_mz[i]
        delta = target * tol_ppm / 1e6
        left, right = 0, n
        while left < right:
            mid = (left + right) // 2
            if spectrum_mz[mid] < target - delta:
                left = mid + 1
            else:
                right = mid
        if left < n and spectrum_mz[left] <= target + delta:
            n_matched += 1
    return n_matched


@numba.jit(nopython=True, cache=True)
def site_determining_ions(
    mz_a: np.ndarray, mz_b: np.ndarray, tol_ppm: float
) -> np.ndarray:
    """Ions of ``mz_a`` (sorted) without a counterpart in ``mz_b`` (sorted)."""
    keep = np.ones(len(mz_a), dtype=np.bool_)
    for i in range(len(mz_a)):
        if count_matched_ions(mz_a[i:i + 1], mz_b, tol_ppm) > 0:
            keep[i] = False
    return mz_a[keep]

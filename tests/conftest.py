"""Pytest configuration for AlphaShaker tests.

Provides a small synthetic identification run with a clean target/decoy
separation:

- 30 target spectra, three peptides per protein P0..P9
- one target spectrum of a peptide shared by P0 and P1
- one target spectrum of the phosphopeptide PEPSTIDEK (Phospho on S4) with
  a worse rank 2 assumption placing the phosphorylation on T5
- 10 decoy spectra, one DECOY_ protein each

Spectra alternate between two spectrum files.
"""

import numpy as np
import pytest

from alphashaker.identification import (
    IdentificationStore,
    ModificationMatch,
    Peptide,
    PeptideAssumption,
    SequenceProvider,
    SpectrumMatch,
)
from alphashaker.parameters import SearchParameters, ValidationParameters

N_TARGET = 30
N_DECOY = 10
FRACTIONS = ("run1.mgf", "run2.mgf")
LETTERS = "ACDEFGHILNPQRVW"

PHOSPHO_ACCESSION = "Q9PHOS"
PHOSPHO_PROTEIN = "MKPEPSTIDEKR"


def synthetic_sequence(index: int) -> str:
    """Unique tryptic-like sequence without S, T or Y."""
    return (
        "PEP"
        + LETTERS[index % 15]
        + LETTERS[(index // 15) % 15]
        + LETTERS[(index // 225) % 15]
        + "K"
    )


def _spectrum(index: int, assumptions) -> SpectrumMatch:
    spectrum_match = SpectrumMatch(FRACTIONS[index % 2], f"scan={index}")
    for assumption in assumptions:
        spectrum_match.add_assumption(assumption)
    return spectrum_match


def build_synthetic_run():
    """Return ``(store, sequence_provider)`` of the synthetic run."""
    store = IdentificationStore()
    target_scores = np.linspace(1e-4, 1e-2, N_TARGET)
    decoy_scores = np.linspace(0.1, 1.0, N_DECOY)
    protein_peptides = {f"P{k}": [] for k in range(N_TARGET // 3)}

    index = 0
    for i in range(N_TARGET):
        accession = f"P{i // 3}"
        sequence = synthetic_sequence(i)
        protein_peptides[accession].append(sequence)
        peptide = Peptide(sequence, parent_proteins=[accession])
        store.add_spectrum_match(_spectrum(index, [
            PeptideAssumption(1, 1, peptide, 2, float(target_scores[i]))
        ]))
        index += 1

    shared = Peptide("SHAREDPEPK", parent_proteins=["P0", "P1"])
    protein_peptides["P0"].append(shared.sequence)
    protein_peptides["P1"].append(shared.sequence)
    store.add_spectrum_match(_spectrum(index, [PeptideAssumption(1, 1, shared, 2, 1e-3)]))
    index += 1

    best = Peptide("PEPSTIDEK", [ModificationMatch("Phospho", 4)], [PHOSPHO_ACCESSION])
    alternative = Peptide("PEPSTIDEK", [ModificationMatch("Phospho", 5)], [PHOSPHO_ACCESSION])
    store.add_spectrum_match(_spectrum(index, [
        PeptideAssumption(1, 1, best, 2, 2e-3),
        PeptideAssumption(1, 2, alternative, 2, 0.5),
    ]))
    index += 1

    for i in range(N_DECOY):
        peptide = Peptide(synthetic_sequence(1000 + i), parent_proteins=[f"DECOY_P{i}"])
        store.add_spectrum_match(_spectrum(index, [
            PeptideAssumption(1, 1, peptide, 2, float(decoy_scores[i]))
        ]))
        index += 1

    store.flush()

    proteins = [
        (accession, "M" + "".join(peptides), f"Uncharacterized protein number{accession}")
        for accession, peptides in protein_peptides.items()
    ]
    proteins.append((PHOSPHO_ACCESSION, PHOSPHO_PROTEIN, "Phosphorylated test protein"))
    return store, SequenceProvider(proteins)


@pytest.fixture
def synthetic_run():
    """Synthetic identification run as ``(store, sequence_provider)``."""
    return build_synthetic_run()


@pytest.fixture
def strict_parameters():
    """Validation parameters without subgroup pooling and with one bin per score."""
    return ValidationParameters.strict()


@pytest.fixture
def search_parameters():
    """Search parameters with the common modifications."""
    return SearchParameters.default()


@pytest.fixture
def protein_descriptions():
    """Accession → description pairs for protein group classification."""
    return {
        "P1": "Serine threonine kinase receptor alpha",
        "P2": "Serine threonine kinase receptor gamma",
        "P3": "Heat shock protein cognate",
        "P4": "Ribosomal protein large subunit",
    }


# Random seed for reproducibility
@pytest.fixture(scope="session", autouse=True)
def set_random_seed():
    """Set random seed for reproducible tests."""
    np.random.seed(42)

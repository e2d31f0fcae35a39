"""Physical constants, residue masses and processing defaults.

Masses are provided both as dictionaries and as ord()-indexed arrays so they
can be used from plain Python and from Numba JIT-compiled kernels.

Sources
-------
- NIST physical constants: https://physics.nist.gov/cgi-bin/cuu/Value
- IUPAC amino acid masses: https://www.unimod.org/masses.html
- Unimod modification masses: https://www.unimod.org/modifications_list.php
"""

import numpy as np

# =============================================================================
# Fundamental Physical Constants (NIST values)
# =============================================================================

# Proton mass (NOT hydrogen atom mass!)
PROTON_MASS = 1.007276466622  # Da

# Water mass (H2O)
H2O_MASS = 18.010564684  # Da

# =============================================================================
# Amino Acid Monoisotopic Residue Masses (Da)
# =============================================================================

AA_MASSES_DICT = {
    'A': 71.037114,
    'R': 156.101111,
    'N': 114.042927,
    'D': 115.026943,
    'C': 103.009185,
    'E': 129.042593,
    'Q': 128.058578,
    'G': 57.021464,
    'H': 137.058912,
    'I': 113.084064,
    'L': 113.084064,
    'K': 128.094963,
    'M': 131.040485,
    'F': 147.068414,
    'P': 97.052764,
    'S': 87.032028,
    'T': 101.047679,
    'W': 186.079313,
    'Y': 163.063320,
    'V': 99.068414,
}

# Ambiguous one-letter codes found in sequence databases
AA_MASSES_NONSTANDARD = {
    'X': 113.084064,  # Unknown → Leu/Ile
    'Z': 128.058578,  # Glu/Gln → Gln
    'B': 114.042927,  # Asp/Asn → Asn
    'J': 113.084064,  # Leu/Ile → Leu
    'U': 150.953636,  # Selenocysteine
    'O': 237.147727,  # Pyrrolysine
}

# Access via: AA_MASSES[ord('A')] → 71.037114
AA_MASSES = np.zeros(256, dtype=np.float64)

for aa, mass in AA_MASSES_DICT.items():
    AA_MASSES[ord(aa)] = mass

for aa, mass in AA_MASSES_NONSTANDARD.items():
    AA_MASSES[ord(aa)] = mass

# Average residue masses, used for protein molecular weights
AA_AVERAGE_MASSES_DICT = {
    'A': 71.0788, 'R': 156.1875, 'N': 114.1038, 'D': 115.0886,
    'C': 103.1388, 'E': 129.1155, 'Q': 128.1307, 'G': 57.0519,
    'H': 137.1411, 'I': 113.1594, 'L': 113.1594, 'K': 128.1741,
    'M': 131.1926, 'F': 147.1766, 'P': 97.1167, 'S': 87.0782,
    'T': 101.1051, 'W': 186.2132, 'Y': 163.1760, 'V': 99.1326,
    'X': 113.1594, 'Z': 128.1307, 'B': 114.1038, 'J': 113.1594,
    'U': 150.0388, 'O': 237.3018,
}

AVERAGE_H2O_MASS = 18.01528  # Da

# =============================================================================
# Common Modification Masses
# =============================================================================

CARBAMIDOMETHYL_MASS = 57.021464  # Unimod:4
OXIDATION_MASS = 15.994915        # Unimod:35
ACETYL_MASS = 42.010565           # Unimod:1
PHOSPHO_MASS = 79.966331          # Unimod:21
DEAMIDATION_MASS = 0.984016       # Unimod:7

# =============================================================================
# Identification Keys
# =============================================================================

# Spectrum key: "<spectrum file>_cus_<spectrum title>"
SPECTRUM_KEY_SEPARATOR = "_cus_"

# Protein group key: sorted accessions joined by a space
PROTEIN_KEY_SEPARATOR = " "

# Peptide key: sequence followed by sorted variable modification names
PEPTIDE_KEY_SEPARATOR = "_"

UNMODIFIED_FAMILY = "unmodified"

# Accession tags identifying decoy database entries
DECOY_PREFIXES = ("DECOY_", "REV_", "rev_")
DECOY_SUFFIXES = ("_REVERSED", "-REVERSED")

# =============================================================================
# Processing Defaults
# =============================================================================

# Target FDR in percent
DEFAULT_FDR = 1.0

# Minimal combined target+decoy count per probability bin after curing
DEFAULT_MIN_SUPPORT = 10

# Maps with fewer targets before the first decoy are flagged suspicious
DEFAULT_SUSPICIOUS_N_MAX = 100

# Subgroups with fewer observations are pooled with other small subgroups
DEFAULT_MIN_GROUP_SIZE = 100

# Default MS2 (fragment) mass tolerance in PPM
DEFAULT_MS2_TOLERANCE = 20.0  # ppm

# PTM score thresholds used by the confidence table
A_SCORE_THRESHOLD = 50.0
DELTA_SCORE_THRESHOLD = 50.0

# Localization score of a modification with a single possible site
A_SCORE_UNAMBIGUOUS = 1000.0

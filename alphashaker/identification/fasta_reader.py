"""FASTA file reading and header parsing.

Supports UniProt (``>sp|P12345|NAME_HUMAN Description``) and generic
(``>PROTEIN_ID Description``) headers. The description returned is the free
text following the identifier token, which is what protein group
classification compares.
"""

import logging
from pathlib import Path
from typing import List, Tuple, Union

logger = logging.getLogger(__name__)


def parse_protein_id(header: str) -> Tuple[str, str]:
    """Extract accession and description from a FASTA header.

    Parameters
    ----------
    header : str
        FASTA header line (without leading '>')

    Returns
    -------
    accession : str
        Protein accession
    description : str
        Header text after the identifier token ('' if none)

    Examples
    --------
    >>> parse_protein_id("sp|P12345|NAME_HUMAN Some protein OS=Homo sapiens")
    ('P12345', 'Some protein OS=Homo sapiens')

    >>> parse_protein_id("PROT123 Description here")
    ('PROT123', 'Description here')
    """
    header = header.strip()
    tokens = header.split(None, 1)
    if not tokens:
        return "", ""
    identifier = tokens[0]
    description = tokens[1].strip() if len(tokens) > 1 else ""

    if '|' in identifier:
        parts = identifier.split('|')
        accession = parts[1] if len(parts) >= 2 and parts[1] else parts[0]
    else:
        accession = identifier

    return accession, description


def read_fasta(fasta_path: Union[str, Path]) -> List[Tuple[str, str, str]]:
    """Read a FASTA file into ``(accession, sequence, description)`` tuples.

    Raises
    ------
    FileNotFoundError
        If the file does not exist
    """
    fasta_path = Path(fasta_path)

    if not fasta_path.exists():
        raise FileNotFoundError(f"FASTA file not found: {fasta_path}")

    logger.info(f"Reading FASTA file: {fasta_path.name}")

    proteins = []
    current_id = None
    current_description = ""
    current_seq: List[str] = []

    with open(fasta_path) as f:
        for line in f:
            if line.startswith('>'):
                if current_id and current_seq:
                    proteins.append((current_id, ''.join(current_seq), current_description))
                current_id, current_description = parse_protein_id(line[1:])
                current_seq = []
            else:
                current_seq.append(line.strip())

        if current_id and current_seq:
            proteins.append((current_id, ''.join(current_seq), current_description))

    logger.info(f"✓ Read {len(proteins):,} proteins from {fasta_path.name}")

    return proteins

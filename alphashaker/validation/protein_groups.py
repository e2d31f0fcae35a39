"""Protein inference: group merging, classification and canonical ordering.

Protein groups (matches keyed by several accessions) are resolved in three
steps over the groups ordered by ascending raw score:

1. Merge: a shared group (more than one accession, raw score < 1) is merged
   into every strict accession subset of equal or better raw score. The
   shared peptides are copied into those unique groups and the shared group
   is removed from the protein map and the store.
2. Classification: accessions of the remaining groups are compared through
   their descriptions. Groups become ISOFORMS, ISOFORMS_UNRELATED or
   UNRELATED and the class is propagated to their peptides.
3. Ordering: target groups are sorted by (score, -peptides, -spectra, key)
   and the reporting maxima are collected in ``Metrics``.

Description similarity is a heuristic: descriptions are split on whitespace,
words of up to three characters are dropped, and two descriptions are
similar if they keep the same number of words and at least half of the
words are identical at the same position.
"""

import logging
from typing import Dict, List, Optional, Set

from ..identification.match_parameter import GroupClass
from ..identification.matches import (
    ProteinMatch,
    accessions_from_key,
    is_decoy_group,
    is_strict_subgroup,
)
from ..identification.providers import SequenceProvider
from ..identification.store import IdentificationStore
from ..progress import WaitingHandler
from ..scoring.specific_maps import ProteinMap
from .metrics import Metrics

logger = logging.getLogger(__name__)


def parse_description(description: Optional[str]) -> Optional[List[str]]:
    """Words longer than three characters, None for a missing description."""
    if description is None:
        return None
    return [word for word in description.split() if len(word) > 3]


def get_similarity(primary: Optional[List[str]], secondary: Optional[List[str]]) -> bool:
    """True if two parsed descriptions are similar."""
    if primary is None or secondary is None:
        return False
    if len(primary) != len(secondary):
        return False
    n_match = sum(1 for a, b in zip(primary, secondary) if a == b)
    return n_match * 2 >= len(primary)


class ProteinGroupResolver:
    """Resolve protein inference ambiguity in the identification store.

    Parameters
    ----------
    store : IdentificationStore
        Store holding the protein, peptide and spectrum matches
    protein_map : ProteinMap
        Map receiving the removal of merged groups
    sequence_provider : SequenceProvider
        Descriptions and sequences of the accessions
    metrics : Metrics, optional
        Receives the canonical ordering and maxima
    """

    def __init__(
        self,
        store: IdentificationStore,
        protein_map: ProteinMap,
        sequence_provider: SequenceProvider,
        metrics: Optional[Metrics] = None,
    ):
        self.store = store
        self.protein_map = protein_map
        self.sequence_provider = sequence_provider
        self.metrics = metrics if metrics is not None else Metrics()
        self._descriptions: Dict[str, Optional[List[str]]] = {}

    def _description(self, accession: str) -> Optional[List[str]]:
        if accession not in self._descriptions:
            self._descriptions[accession] = parse_description(
                self.sequence_provider.get_description(accession)
            )
        return self._descriptions[accession]

    def is_similar(self, accession_1: str, accession_2: str) -> bool:
        return get_similarity(self._description(accession_1), self._description(accession_2))

    def _score(self, key: str) -> float:
        return self.store.get_match_parameter(key).probability_score

    def _sorted_keys(self) -> List[str]:
        return sorted(self.store.protein_keys(), key=self._score)

    # -------------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------------

    def resolve(self, waiting_handler: Optional[WaitingHandler] = None) -> None:
        """Merge, classify and order the protein groups."""
        if waiting_handler is None:
            waiting_handler = WaitingHandler()
        waiting_handler.start_stage(3 * len(self.store.protein_keys()))

        n_solved = self.merge_groups(waiting_handler)
        if n_solved is None:
            return
        counts = self.classify_groups(waiting_handler)
        if counts is None:
            return
        n_groups, n_isoforms, n_left = counts
        if not self.order_groups(waiting_handler):
            return

        waiting_handler.append_report(
            f"{n_solved + n_isoforms} conflicts resolved. "
            f"{n_groups} protein groups remaining ({n_left} suspicious)."
        )

    # -------------------------------------------------------------------------
    # Merge pass
    # -------------------------------------------------------------------------

    def merge_groups(self, waiting_handler: WaitingHandler) -> Optional[int]:
        """Merge shared groups into their better-scored subgroups.

        Returns the number of removed groups, None if canceled.
        """
        keys = self._sorted_keys()
        rank = {key: i for i, key in enumerate(keys)}
        groups_by_accession: Dict[str, Set[str]] = {}
        for key in keys:
            for accession in accessions_from_key(key):
                groups_by_accession.setdefault(accession, set()).add(key)

        to_remove = []
        for shared_key in keys:
            waiting_handler.increase_secondary_progress()
            if waiting_handler.is_run_canceled():
                return None
            accessions = accessions_from_key(shared_key)
            if len(accessions) < 2:
                continue
            shared_score = self._score(shared_key)
            if shared_score >= 1:
                continue

            candidates = set()
            for accession in accessions:
                candidates.update(groups_by_accession[accession])
            better = False
            shared_match = None
            for unique_key in sorted(candidates, key=rank.get):
                if not is_strict_subgroup(shared_key, unique_key):
                    continue
                if self._score(unique_key) > shared_score:
                    continue
                if shared_match is None:
                    shared_match = self.store.get_protein_match(shared_key)
                unique_match = self.store.get_protein_match(unique_key)
                for peptide_key in shared_match.peptide_keys:
                    unique_match.add_peptide_match(peptide_key)
                self.store.set_match_changed(unique_match)
                better = True
            if better:
                to_remove.append(shared_key)

        for key in to_remove:
            self.protein_map.remove_point(self._score(key), is_decoy_group(key))
            self.store.remove_match(key)
            logger.debug(f"Merged protein group {key!r} into its subgroups")
        return len(to_remove)

    # -------------------------------------------------------------------------
    # Classification pass
    # -------------------------------------------------------------------------

    def classify_groups(self, waiting_handler: WaitingHandler):
        """Classify the remaining groups and their peptides.

        Returns ``(n_groups, n_isoform_groups, n_unrelated_groups)`` counted
        over multi-accession groups, None if canceled.
        """
        n_groups = 0
        n_isoforms = 0
        n_left = 0
        for key in self._sorted_keys():
            waiting_handler.increase_secondary_progress()
            if waiting_handler.is_run_canceled():
                return None
            protein_match = self.store.get_protein_match(key)
            if protein_match.n_proteins > 1:
                group_class = self._classify_shared(protein_match)
                n_groups += 1
                if group_class == GroupClass.UNRELATED:
                    n_left += 1
                else:
                    n_isoforms += 1
            else:
                self._classify_single(protein_match)
        return n_groups, n_isoforms, n_left

    def _classify_shared(self, protein_match: ProteinMatch) -> GroupClass:
        accessions = list(protein_match.accessions)
        main_accession = accessions[0]
        similarity_found = False
        for i in range(len(accessions) - 1):
            for j in range(i + 1, len(accessions)):
                if self.is_similar(accessions[i], accessions[j]):
                    similarity_found = True
                    main_accession = accessions[i]
                    break
            if similarity_found:
                break

        if not similarity_found:
            group_class = GroupClass.UNRELATED
        elif all(
            self.is_similar(main_accession, accession)
            for accession in accessions if accession != main_accession
        ):
            group_class = GroupClass.ISOFORMS
        else:
            group_class = GroupClass.ISOFORMS_UNRELATED

        self.store.get_match_parameter(protein_match.key).group_class = group_class
        for peptide_key in protein_match.peptide_keys:
            peptide_class = group_class
            if group_class == GroupClass.ISOFORMS:
                peptide_match = self.store.get_peptide_match(peptide_key)
                for accession in peptide_match.theoretic_peptide.parent_proteins:
                    if accession in protein_match.accessions:
                        continue
                    if not self.is_similar(main_accession, accession):
                        peptide_class = GroupClass.ISOFORMS_UNRELATED
                        break
            self.store.get_match_parameter(peptide_key).group_class = peptide_class

        if protein_match.main_accession != main_accession:
            protein_match.main_accession = main_accession
            self.store.set_match_changed(protein_match)
        return group_class

    def _classify_single(self, protein_match: ProteinMatch) -> None:
        main_accession = protein_match.main_accession
        for peptide_key in protein_match.peptide_keys:
            peptide_match = self.store.get_peptide_match(peptide_key)
            other_protein = False
            unrelated = False
            for accession in peptide_match.theoretic_peptide.parent_proteins:
                if accession in protein_match.accessions:
                    continue
                other_protein = True
                if not self.is_similar(main_accession, accession):
                    unrelated = True
                    break
            parameter = self.store.get_match_parameter(peptide_key)
            if unrelated:
                parameter.group_class = GroupClass.UNRELATED
            elif other_protein:
                parameter.group_class = GroupClass.ISOFORMS

    # -------------------------------------------------------------------------
    # Canonical ordering
    # -------------------------------------------------------------------------

    def order_groups(self, waiting_handler: WaitingHandler) -> bool:
        """Sort target groups and collect maxima. False if canceled."""
        sort_keys = {}
        max_mw = 0.0
        for key in self.store.protein_keys():
            waiting_handler.increase_secondary_progress()
            if waiting_handler.is_run_canceled():
                return False
            if is_decoy_group(key):
                continue
            protein_match = self.store.get_protein_match(key)
            n_peptides = len(protein_match.peptide_keys)
            n_spectra = sum(
                self.store.get_peptide_match(peptide_key).spectrum_count
                for peptide_key in protein_match.peptide_keys
            )
            sort_keys[key] = (self._score(key), -n_peptides, -n_spectra, key)

            accession = protein_match.main_accession
            try:
                mw = self.sequence_provider.get_molecular_weight(accession)
            except KeyError:
                waiting_handler.append_report(f"Protein not found: {accession}.")
                logger.warning(f"Protein not found in the sequence database: {accession}")
                continue
            max_mw = max(max_mw, mw)

        self.metrics.protein_keys = sorted(sort_keys, key=sort_keys.get)
        self.metrics.max_n_peptides = max((-k[1] for k in sort_keys.values()), default=0)
        self.metrics.max_n_spectra = max((-k[2] for k in sort_keys.values()), default=0)
        self.metrics.max_mw = max_mw
        return True

"""
Alignment of one sample sequence against one gene, as reported by the aligner.

The aligner supplies the codon-by-codon coordinates and the mutations it
called. This module clips them to the aligned region and derives the quality
metrics: the aligned nucleotide and amino acid strings, and the match
percentage.
"""
import logging
import typing
from dataclasses import dataclass
from functools import cached_property
from typing import Dict, Iterable, Tuple

from Bio.Seq import Seq
from Bio.SeqRecord import SeqRecord

from drscore.core.genes import DrugClass, Gene
from drscore.core.mutations import FrameShift, Mutation, MutationSet, MutationType
from drscore.utils.errors import InvalidAlignmentError
from drscore.utils.translation import translate

logger = logging.getLogger(__name__)

CODON_LENGTH = 3
GAP = '-'


@dataclass(frozen=True)
class AlignedSite:
    pos_aa: int
    pos_na: int
    length_na: int = CODON_LENGTH


class AlignedGeneSeq:
    def __init__(self,
                 sequence: typing.Union[SeqRecord, str],
                 gene: Gene,
                 first_aa: int,
                 last_aa: int,
                 first_na: int,
                 last_na: int,
                 aligned_sites: Iterable[AlignedSite],
                 mutations: Iterable[Mutation],
                 frame_shifts: Iterable[FrameShift],
                 left_trimmed: int = 0,
                 right_trimmed: int = 0):
        """ Clip the aligner's output to the aligned region, and validate it.

        :param sequence: the raw nucleotide sequence that was aligned
        :param gene: the gene it was aligned to
        :param first_aa: first amino acid position of the aligned region
        :param last_aa: last amino acid position, inclusive
        :param first_na: first nucleotide position in sequence, 1-based
        :param last_na: last nucleotide position in sequence, inclusive
        :param aligned_sites: codon coordinates, in amino acid order
        :param mutations: mutations called by the aligner, may extend past
            the aligned region
        :param frame_shifts: frame shifts called by the aligner
        :param left_trimmed: nucleotides trimmed from the start
        :param right_trimmed: nucleotides trimmed from the end
        :raises InvalidAlignmentError: if the sites are out of order, or the
            aligned region has no nucleotides to compare.
        """
        if isinstance(sequence, str):
            sequence = SeqRecord(Seq(sequence))
        self.sequence = sequence
        self.gene = gene
        self.first_aa = first_aa
        self.last_aa = last_aa
        self.first_na = first_na
        self.last_na = last_na
        self.left_trimmed = left_trimmed
        self.right_trimmed = right_trimmed

        self.aligned_sites: Tuple[AlignedSite, ...] = tuple(
            site
            for site in aligned_sites
            if first_aa <= site.pos_aa <= last_aa)
        self.mutations = MutationSet(mutations).filter_by_position(first_aa,
                                                                   last_aa)
        self.frame_shifts: Tuple[FrameShift, ...] = tuple(
            frame_shift
            for frame_shift in frame_shifts
            if first_aa <= frame_shift.position <= last_aa)

        for previous, site in zip(self.aligned_sites, self.aligned_sites[1:]):
            if site.pos_aa < previous.pos_aa:
                raise InvalidAlignmentError(
                    'Aligned sites of %s out of order at amino acid %d.',
                    gene.name,
                    site.pos_aa)
        self.total_nas = self._count_total_nas()
        if self.total_nas <= 0:
            raise InvalidAlignmentError(
                'No nucleotides aligned to %s between %d and %d (total %d).',
                gene.name,
                first_na,
                last_na,
                self.total_nas)

    def _count_total_nas(self) -> int:
        num_nas = self.last_na - self.first_na + 1
        for mutation in self.mutations:
            if mutation.is_unsequenced:
                # NNN doesn't count
                num_nas -= CODON_LENGTH
            elif mutation.is_deletion:
                num_nas += CODON_LENGTH
        for frame_shift in self.frame_shifts:
            if frame_shift.is_deletion:
                num_nas += frame_shift.size
        return num_nas

    @property
    def shrinkage(self) -> Tuple[int, int]:
        return self.left_trimmed, self.right_trimmed

    @cached_property
    def aligned_nas(self) -> str:
        na_seq = str(self.sequence.seq)
        codons = []
        for site in self.aligned_sites:
            start = site.pos_na - 1
            codon = na_seq[start:start + min(site.length_na, CODON_LENGTH)]
            codons.append(codon.ljust(CODON_LENGTH, GAP))
        return ''.join(codons)

    @cached_property
    def aligned_aas(self) -> str:
        """ One amino acid per aligned site, X for mixtures, - for gaps. """
        return translate(self.aligned_nas)

    @property
    def size(self) -> int:
        """ Number of codons that aren't gaps.

        Bases from partial sites are pooled, so size plus gap_codon_count only
        equals the number of sites when each site is a whole codon or empty.
        """
        return len(self.aligned_nas.replace(GAP, '')) // CODON_LENGTH

    @property
    def gap_codon_count(self) -> int:
        return sum(1 for site in self.aligned_sites if site.length_na == 0)

    @property
    def num_discordant_nas(self) -> int:
        # Every substitution counts as a whole codon, even if fewer bases changed.
        num_discordant_nas = sum(CODON_LENGTH
                                 for mutation in self.mutations
                                 if not mutation.is_unsequenced)
        num_discordant_nas += sum(frame_shift.size
                                  for frame_shift in self.frame_shifts
                                  if frame_shift.is_insertion)
        return num_discordant_nas

    @cached_property
    def match_pcnt(self) -> float:
        return 100 - 100 * self.num_discordant_nas / self.total_nas

    @property
    def mutation_list_string(self) -> str:
        return self.mutations.join()

    @property
    def insertions(self) -> MutationSet:
        return self.mutations.insertions

    @property
    def deletions(self) -> MutationSet:
        return self.mutations.deletions

    @property
    def stop_codons(self) -> MutationSet:
        return self.mutations.stop_codons

    @property
    def highly_ambiguous_codons(self) -> MutationSet:
        return self.mutations.ambiguous_codons

    @cached_property
    def group_mutations_by_mut_type(self) -> Dict[MutationType, MutationSet]:
        return self.mutations.group_by_mutation_type(self.gene)

    def mutations_by_mut_type(self, mutation_type: MutationType) -> MutationSet:
        return self.group_mutations_by_mut_type.get(mutation_type, MutationSet())

    @cached_property
    def unusual_mutations(self) -> MutationSet:
        return MutationSet(mutation
                           for mutation in self.mutations
                           if self.gene.is_unusual(mutation))

    def unusual_mutations_at_drp(self, repository, drug_class: DrugClass = None) -> MutationSet:
        """ Unusual mutations at positions where the repository has rules. """
        return repository.get_at_drp(self.unusual_mutations, drug_class)

    def mutations_at_drp(self, repository, drug_class: DrugClass = None) -> MutationSet:
        return repository.get_at_drp(self.mutations, drug_class)

    def drms(self, repository, drug_class: DrugClass = None) -> MutationSet:
        """ Mutations listed by a scoring rule in the repository.

        :param repository: the scoring rules
        :param drug_class: only look at this class's rules, or None for all
        """
        return repository.get_drms(self.mutations, drug_class)

    def non_drm_mutations(self, repository, drug_class: DrugClass = None) -> MutationSet:
        return self.mutations.subtracts_by(self.drms(repository, drug_class))

    def __repr__(self):
        return (f'AlignedGeneSeq({self.gene.name}, {self.first_aa}-{self.last_aa}, '
                f'{self.mutation_list_string!r})')

"""
Amino acid mutations, sets of them, and frame shifts.

A mutation is identified by its gene, position, and the set of amino acids
called at that position. Insertions, deletions, stop codons, and unreadable
codons are encoded as members of that set, using the symbols below, so that
mixtures like a deletion mixed with the wild type compare naturally.

>>> m = Mutation.parse('RT:M41L')
>>> m.gene, m.position, m.name
('RT', 41, 'M41L')
>>> MutationSet.parse('41L + 215FY', gene='RT').join()
'41L, 215FY'
"""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple

try:
    from drscore import settings  # type: ignore[attr-defined]
except ImportError:
    from drscore import settings_default as settings

INSERTION = '_'
DELETION = '-'
STOP = '*'
UNKNOWN = 'X'
SPECIAL_AA_TEXT = {INSERTION: 'ins', DELETION: 'del'}

MUTATION_PATTERN = re.compile(
    r'(?:(?P<gene>\w+):)?'
    r'(?P<reference>[A-Z])?'
    r'(?P<position>\d+)'
    r'(?P<aas>ins|del|[A-Z*_\-id]+)')
SEPARATOR_PATTERN = re.compile(r'\s*(?:,|\+|\bAND\b|\s)\s*')


class MutationType(Enum):
    MAJOR = 'Major'
    ACCESSORY = 'Accessory'
    NRTI = 'NRTI'
    NNRTI = 'NNRTI'
    OTHER = 'Other'


def parse_aas(aa_text: str) -> FrozenSet[str]:
    if aa_text == 'ins':
        return frozenset(INSERTION)
    if aa_text == 'del':
        return frozenset(DELETION)
    return frozenset(aa_text.replace('i', INSERTION).replace('d', DELETION))


def format_aas(aas: Iterable[str]) -> str:
    aas = set(aas)
    specials = [aa for aa in (INSERTION, DELETION) if aa in aas]
    plain = sorted(aas.difference(specials))
    if not plain and len(specials) == 1:
        return SPECIAL_AA_TEXT[specials[0]]
    return ''.join(plain + specials)


@dataclass(frozen=True)
class Mutation:
    gene: str
    position: int
    aas: FrozenSet[str]

    # Carried for display and quality metrics, not part of the identity.
    reference: str = field(default='', compare=False)
    triplet: str = field(default='', compare=False)

    def __post_init__(self):
        if not isinstance(self.aas, frozenset):
            object.__setattr__(self, 'aas', frozenset(self.aas))
        if not self.aas:
            raise ValueError(
                f'No amino acids given for {self.gene} position {self.position}.')
        if self.position < 1:
            raise ValueError(f'Invalid position for {self.gene}: {self.position}.')

    @classmethod
    def parse(cls,
              text: str,
              gene: str = None,
              reference_seq: str = None,
              triplet: str = '') -> 'Mutation':
        """ Parse a mutation from text like M41L, RT:41FY, or 69ins.

        :param text: the mutation, optionally prefixed with its gene and the
            reference amino acid
        :param gene: the gene to use when the text doesn't name one
        :param reference_seq: amino acid reference for the gene, used to fill
            in the reference amino acid when the text doesn't give one
        :param triplet: the codon that was read for this mutation
        """
        match = MUTATION_PATTERN.fullmatch(text.strip())
        if match is None:
            raise ValueError(f'Invalid mutation: {text!r}.')
        gene = match.group('gene') or gene
        if gene is None:
            raise ValueError(f'No gene given for mutation {text!r}.')
        position = int(match.group('position'))
        reference = match.group('reference') or ''
        if not reference and reference_seq and position <= len(reference_seq):
            reference = reference_seq[position-1]
        return cls(gene,
                   position,
                   parse_aas(match.group('aas')),
                   reference=reference,
                   triplet=triplet)

    @property
    def gene_position(self) -> Tuple[str, int]:
        return self.gene, self.position

    @property
    def aa_text(self) -> str:
        return format_aas(self.aas)

    @property
    def name(self) -> str:
        return f'{self.reference}{self.position}{self.aa_text}'

    @property
    def full_name(self) -> str:
        return f'{self.gene}:{self.name}'

    @property
    def sort_key(self):
        return self.gene, self.position, self.aa_text

    @property
    def is_insertion(self) -> bool:
        return INSERTION in self.aas

    @property
    def is_deletion(self) -> bool:
        return DELETION in self.aas

    @property
    def has_stop(self) -> bool:
        return STOP in self.aas

    @property
    def is_ambiguous(self) -> bool:
        return UNKNOWN in self.aas or len(self.aas) > settings.max_mixture_aas

    @property
    def is_unsequenced(self) -> bool:
        return self.triplet == settings.unknown_triplet

    def merge(self, other: 'Mutation') -> 'Mutation':
        """ Combine the amino acids called at the same position. """
        if other.gene_position != self.gene_position:
            raise ValueError(f'Cannot merge {self.full_name} with {other.full_name}.')
        return Mutation(self.gene,
                        self.position,
                        self.aas | other.aas,
                        reference=self.reference or other.reference,
                        triplet=self.triplet or other.triplet)

    def __str__(self):
        return self.name


class MutationSet:
    """ An immutable set of mutations with at most one per gene position.

    Equality and hashing ignore order, so a set can be used as the key for a
    combination rule. Iteration follows the order the mutations were given.
    """
    def __init__(self, mutations: Iterable[Mutation] = ()):
        merged: Dict[Tuple[str, int], Mutation] = {}
        for mutation in mutations:
            key = mutation.gene_position
            existing = merged.get(key)
            merged[key] = mutation if existing is None else existing.merge(mutation)
        self._by_position = merged
        self._values = frozenset(merged.values())

    @classmethod
    def parse(cls,
              text: str,
              gene: str = None,
              reference_seq: str = None) -> 'MutationSet':
        """ Parse mutations separated by commas, spaces, '+', or 'AND'. """
        tokens = [token
                  for token in SEPARATOR_PATTERN.split(text.strip())
                  if token]
        return cls(Mutation.parse(token, gene, reference_seq)
                   for token in tokens)

    def __iter__(self) -> Iterator[Mutation]:
        return iter(self._by_position.values())

    def __len__(self):
        return len(self._by_position)

    def __contains__(self, mutation):
        return mutation in self._values

    def __eq__(self, other):
        if not isinstance(other, MutationSet):
            return NotImplemented
        return self._values == other._values

    def __hash__(self):
        return hash(self._values)

    def __repr__(self):
        return f'MutationSet({self.join()!r})'

    def __str__(self):
        return self.join()

    def get(self, gene: str, position: int) -> Optional[Mutation]:
        return self._by_position.get((gene, position))

    def sorted(self) -> List[Mutation]:
        return sorted(self, key=lambda mutation: mutation.sort_key)

    def join(self, separator: str = ', ', full_names: bool = False) -> str:
        return separator.join(mutation.full_name if full_names else mutation.name
                              for mutation in self.sorted())

    def union(self, other: Iterable[Mutation]) -> 'MutationSet':
        return MutationSet(list(self) + list(other))

    def intersects_with(self, other: 'MutationSet') -> 'MutationSet':
        return MutationSet(mutation for mutation in self if mutation in other)

    def subtracts_by(self, other: 'MutationSet') -> 'MutationSet':
        return MutationSet(mutation for mutation in self if mutation not in other)

    def is_subset_of(self, other: 'MutationSet') -> bool:
        return self._values <= other._values

    def filter_by_position(self, start: int, end: int) -> 'MutationSet':
        """ Keep mutations between start and end, inclusive. """
        return MutationSet(mutation
                           for mutation in self
                           if start <= mutation.position <= end)

    def filter_by_gene(self, gene: str) -> 'MutationSet':
        return MutationSet(mutation for mutation in self if mutation.gene == gene)

    def covers(self, mutations: Iterable[Mutation]) -> bool:
        """ True if every one of mutations shares an amino acid call with this set.

        A rule mutation like 215FY is covered by 215Y or by a 215FS mixture.
        """
        return all(self.has_shared_aa_mutation(mutation, ignore_ambiguous=False)
                   for mutation in mutations)

    def has_shared_aa_mutation(self,
                               mutation: Mutation,
                               ignore_ambiguous: bool = True) -> bool:
        """ Check for a mutation at the same position with a common amino acid.

        :param mutation: the mutation to look for
        :param ignore_ambiguous: True if reference amino acids, stop codons,
            and unknown calls should not count as shared.
        """
        observed = self.get(mutation.gene, mutation.position)
        if observed is None:
            return False
        observed_aas = observed.aas
        expected_aas = mutation.aas
        if ignore_ambiguous:
            ignored = {STOP, UNKNOWN}
            reference = observed.reference or mutation.reference
            if reference:
                ignored.add(reference)
            observed_aas = observed_aas - ignored
            expected_aas = expected_aas - ignored
        return bool(observed_aas & expected_aas)

    def group_by_mutation_type(self, gene) -> Dict[MutationType, 'MutationSet']:
        """ Split this gene's mutations by the gene's classification table.

        :param Gene gene: has an ordered table of {type: {position: aas}}
        :return: {type: mutations}, with an entry for every type of the gene
        """
        groups: Dict[MutationType, List[Mutation]] = {
            mutation_type: []
            for mutation_type in gene.mutation_type_order}
        for mutation in self:
            if mutation.gene != gene.name:
                continue
            for mutation_type, positions in gene.mutation_types.items():
                if positions.get(mutation.position, frozenset()) & mutation.aas:
                    groups[mutation_type].append(mutation)
                    break
            else:
                groups[MutationType.OTHER].append(mutation)
        return {mutation_type: MutationSet(mutations)
                for mutation_type, mutations in groups.items()}

    @property
    def insertions(self) -> 'MutationSet':
        return MutationSet(mutation for mutation in self if mutation.is_insertion)

    @property
    def deletions(self) -> 'MutationSet':
        return MutationSet(mutation for mutation in self if mutation.is_deletion)

    @property
    def stop_codons(self) -> 'MutationSet':
        return MutationSet(mutation for mutation in self if mutation.has_stop)

    @property
    def ambiguous_codons(self) -> 'MutationSet':
        return MutationSet(mutation for mutation in self if mutation.is_ambiguous)


@dataclass(frozen=True)
class FrameShift:
    gene: str
    position: int
    size: int
    is_insertion: bool
    nas: str = field(default='', compare=False)

    @property
    def is_deletion(self) -> bool:
        return not self.is_insertion

    @property
    def name(self) -> str:
        change = 'ins' if self.is_insertion else 'del'
        return f'{self.gene}{self.position}{change}{self.size}bp'

    def __str__(self):
        return self.name

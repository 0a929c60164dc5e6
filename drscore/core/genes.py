"""
Catalog of genes, drug classes, and drugs, loaded from a YAML file.

The catalog also holds each gene's mutation classification table, used to
split a sample's mutations into major, accessory, and other mutations.
"""
import typing
from dataclasses import dataclass, field
from functools import cached_property
from typing import Dict, FrozenSet, List, Tuple

from yaml import safe_load

from drscore.core.mutations import Mutation, MutationType

try:
    from drscore import settings  # type: ignore[attr-defined]
except ImportError:
    from drscore import settings_default as settings


@dataclass(frozen=True)
class Drug:
    name: str
    drug_class: str
    full_name: str = field(default='', compare=False)
    tested: bool = field(default=True, compare=False)

    def __str__(self):
        return self.name


@dataclass(frozen=True)
class DrugClass:
    name: str
    gene: str
    drugs: Tuple[Drug, ...] = field(default=(), compare=False)

    @property
    def drugs_for_testing(self) -> Tuple[Drug, ...]:
        return tuple(drug for drug in self.drugs if drug.tested)

    def __str__(self):
        return self.name


@dataclass(frozen=True)
class Gene:
    name: str
    reference: str = field(default='', compare=False)
    drug_classes: Tuple[DrugClass, ...] = field(default=(), compare=False)
    mutation_types: Dict[MutationType, Dict[int, FrozenSet[str]]] = field(
        default_factory=dict,
        compare=False)
    unusual_aas: Dict[int, FrozenSet[str]] = field(default_factory=dict, compare=False)

    @property
    def length(self) -> int:
        return len(self.reference)

    @property
    def mutation_type_order(self) -> List[MutationType]:
        order = list(self.mutation_types)
        if MutationType.OTHER not in order:
            order.append(MutationType.OTHER)
        return order

    def reference_aa(self, position: int) -> str:
        return self.reference[position-1]

    def is_unusual(self, mutation: Mutation) -> bool:
        """ True if any of the mutation's AAs is rarely seen at its position. """
        return bool(mutation.aas & self.unusual_aas.get(mutation.position, frozenset()))

    def __str__(self):
        return self.name


def parse_position_table(gene_name: str,
                         reference: str,
                         mutation_texts: typing.Iterable[str]) -> Dict[int, FrozenSet[str]]:
    """ Collect the AAs listed at each position, like {41: {'L'}}. """
    positions: Dict[int, FrozenSet[str]] = {}
    for text in mutation_texts:
        mutation = Mutation.parse(text, gene_name, reference)
        positions[mutation.position] = (
            positions.get(mutation.position, frozenset()) | mutation.aas)
    return positions


def parse_mutation_types(gene_name: str,
                         reference: str,
                         type_config: dict) -> Dict[MutationType, Dict[int, FrozenSet[str]]]:
    return {MutationType(type_name): parse_position_table(gene_name,
                                                          reference,
                                                          mutation_texts)
            for type_name, mutation_texts in type_config.items()}


class GeneCatalog:
    @classmethod
    def load(cls, f: typing.TextIO = None) -> 'GeneCatalog':
        """ Load an instance of this class from an open YAML file.

        :param f: The file to load from, or None to load from the default.
        """
        if f is None:
            with settings.genes_path.open() as f:
                return GeneCatalog.load(f)
        return GeneCatalog(safe_load(f))

    def __init__(self, config: dict):
        self.strain = config.get('strain', '')
        self.drug_classes: Dict[str, DrugClass] = {}
        for class_config in config['drug_classes']:
            class_name = class_config['name']
            drugs = tuple(Drug(drug_config['name'],
                               class_name,
                               full_name=drug_config.get('full_name', ''),
                               tested=drug_config.get('tested', True))
                          for drug_config in class_config['drugs'])
            self.drug_classes[class_name] = DrugClass(class_name,
                                                      class_config['gene'],
                                                      drugs)
        self.genes: Dict[str, Gene] = {}
        for gene_config in config['genes']:
            name = gene_config['name']
            reference = gene_config['reference']
            if not isinstance(reference, str):
                reference = ''.join(reference)
            drug_classes = tuple(drug_class
                                 for drug_class in self.drug_classes.values()
                                 if drug_class.gene == name)
            mutation_types = parse_mutation_types(
                name,
                reference,
                gene_config.get('mutation_types', {}))
            unusual_aas = parse_position_table(name,
                                               reference,
                                               gene_config.get('unusual', []))
            self.genes[name] = Gene(name,
                                    reference,
                                    drug_classes,
                                    mutation_types,
                                    unusual_aas)
        unknown_genes = {drug_class.gene
                         for drug_class in self.drug_classes.values()} - set(self.genes)
        if unknown_genes:
            raise ValueError('Drug classes refer to unknown genes: {}.'.format(
                ', '.join(sorted(unknown_genes))))

    @cached_property
    def drugs(self) -> Dict[str, Drug]:
        return {drug.name: drug
                for drug_class in self.drug_classes.values()
                for drug in drug_class.drugs}

    def get_gene(self, name: str) -> Gene:
        try:
            return self.genes[name]
        except KeyError:
            raise ValueError(f'Unknown gene: {name!r}.') from None

    def get_drug_class(self, name: str) -> DrugClass:
        try:
            return self.drug_classes[name]
        except KeyError:
            raise ValueError(f'Unknown drug class: {name!r}.') from None

    def get_drug(self, name: str) -> Drug:
        try:
            return self.drugs[name]
        except KeyError:
            raise ValueError(f'Unknown drug: {name!r}.') from None

    def drug_class_of(self, drug: Drug) -> DrugClass:
        return self.drug_classes[drug.drug_class]

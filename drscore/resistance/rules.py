"""
Scoring rules, loaded from a YAML rule file into an immutable repository.

The rule file holds the same tables as the HIVDB rule database::

    algorithm: HIVDB
    version: '8.3'
    levels: (-INF TO 9 => 1, 10 TO 14 => 2, 15 TO 29 => 3, 30 TO 59 => 4, 60 TO INF => 5)
    drug_levels:            # optional, overrides levels for some drugs
      TPV/r: (-INF TO 14 => 1, 15 TO INF => 3)
    scores:                 # individual mutations
      - {gene: RT, drug: AZT, position: 41, aa: L, score: 15}
    combinations:           # mutations that only score together
      - {gene: RT, drug: AZT, rule: 41L + 215FY, score: 15}
    comments:
      - {gene: RT, mutation: M41L, type: NRTI, text: M41L is a TAM.}

Load the repository once, and share it between threads. To pick up a new rule
file while running, use a RuleStore, which swaps in a complete new repository.
"""
import logging
import threading
import typing
from dataclasses import dataclass
from functools import cached_property
from typing import Callable, Dict, Iterable, List, Optional, Union

from yaml import safe_load, YAMLError

from drscore.core.genes import Drug, DrugClass, Gene, GeneCatalog
from drscore.core.mutations import Mutation, MutationSet
from drscore.resistance.comments import CommentRule, CommentType
from drscore.resistance.levels import LevelThresholds
from drscore.resistance.scorer import (GeneResistance, ResistanceScorer, ScoringStrategy,
                                       get_trigger_mutations)
from drscore.utils.errors import RuleLoadError, RuleSyntaxError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreRule:
    drug_class: DrugClass
    drug: Drug
    trigger: Union[Mutation, MutationSet]
    score: float

    @property
    def is_combination(self) -> bool:
        return isinstance(self.trigger, MutationSet)


def parse_combination(gene: Gene, rule_text: str) -> MutationSet:
    """ Parse a rule like 41L + 215FY, or 41L AND 215FY.

    :raises RuleSyntaxError: if the rule is malformed.
    """
    try:
        combination = MutationSet.parse(rule_text, gene.name, gene.reference)
    except ValueError as ex:
        raise RuleSyntaxError('Invalid combination rule %r for %s: %s',
                              rule_text,
                              gene.name,
                              ex) from ex
    if len(combination) < 2:
        raise RuleSyntaxError(
            'Combination rule %r for %s needs mutations at two or more positions.',
            rule_text,
            gene.name)
    for mutation in combination:
        if mutation.gene != gene.name:
            raise RuleSyntaxError('Combination rule %r for %s refers to %s.',
                                  rule_text,
                                  gene.name,
                                  mutation.gene)
        if mutation.position > gene.length:
            raise RuleSyntaxError('Combination rule %r is past the end of %s.',
                                  rule_text,
                                  gene.name)
    return combination


def group_rule_scores(rules: Iterable[ScoreRule]) -> Dict[DrugClass, Dict[Drug, dict]]:
    """ Build {drug_class: {drug: {trigger: score}}} from a list of rules.

    When a trigger is listed twice for the same drug, the last score wins.
    """
    rules = list(rules)
    drug_classes = dict.fromkeys(rule.drug_class for rule in rules)
    return {
        drug_class: {
            drug: {rule.trigger: rule.score
                   for rule in rules
                   if rule.drug == drug}
            for drug in dict.fromkeys(rule.drug
                                      for rule in rules
                                      if rule.drug_class == drug_class)}
        for drug_class in drug_classes}


class RuleRepository:
    @classmethod
    def load(cls,
             f: typing.TextIO,
             catalog: GeneCatalog = None) -> 'RuleRepository':
        """ Load rules from an open YAML file.

        :param f: the rule file
        :param catalog: genes and drugs that the rules refer to, or None to
            load the default catalog.
        :raises RuleLoadError: if the file can't be parsed, or refers to
            unknown genes or drugs.
        """
        if catalog is None:
            catalog = GeneCatalog.load()
        try:
            config = safe_load(f)
        except YAMLError as ex:
            raise RuleLoadError('Rule file is not valid YAML: %s', ex) from ex
        if not isinstance(config, dict):
            raise RuleLoadError('Rule file should hold a mapping, not %s.',
                                type(config).__name__)
        try:
            return cls.from_config(config, catalog)
        except (AttributeError, KeyError, TypeError, ValueError) as ex:
            raise RuleLoadError('Invalid rule file: %s', ex) from ex

    @classmethod
    def load_path(cls, path, catalog: GeneCatalog = None) -> 'RuleRepository':
        try:
            with open(path) as f:
                return cls.load(f, catalog)
        except OSError as ex:
            raise RuleLoadError('Cannot read rules from %s: %s', path, ex) from ex

    @classmethod
    def from_config(cls, config: dict, catalog: GeneCatalog) -> 'RuleRepository':
        thresholds = LevelThresholds.parse(config['levels'])
        drug_thresholds = {catalog.get_drug(drug_name): LevelThresholds.parse(ranges)
                           for drug_name, ranges in config.get('drug_levels', {}).items()}
        individual_rules = [parse_score_row(row, catalog)
                            for row in config.get('scores', [])]
        combination_rules = []
        for row in config.get('combinations', []):
            try:
                combination_rules.append(parse_combination_row(row, catalog))
            except RuleSyntaxError as ex:
                logger.warning('Skipped combination rule for %s. %s',
                               row.get('drug'),
                               ex)
        comment_rules = [parse_comment_row(row, catalog)
                         for row in config.get('comments', [])]
        return cls(catalog,
                   individual_rules,
                   combination_rules,
                   thresholds,
                   drug_thresholds,
                   comment_rules,
                   algorithm=config.get('algorithm', ''),
                   version=str(config.get('version', '')))

    def __init__(self,
                 catalog: GeneCatalog,
                 individual_rules: Iterable[ScoreRule] = (),
                 combination_rules: Iterable[ScoreRule] = (),
                 thresholds: LevelThresholds = None,
                 drug_thresholds: Dict[Drug, LevelThresholds] = None,
                 comment_rules: Iterable[CommentRule] = (),
                 algorithm: str = '',
                 version: str = ''):
        self.catalog = catalog
        self.individual_rules = tuple(individual_rules)
        self.combination_rules = tuple(combination_rules)
        self.thresholds = thresholds or LevelThresholds.hivdb()
        self.drug_thresholds = dict(drug_thresholds or {})
        self.comment_rules = tuple(comment_rules)
        self.algorithm = algorithm
        self.version = version
        self._scorers: Dict[str, ResistanceScorer] = {}

    def __repr__(self):
        return (f'RuleRepository({self.algorithm!r}, {self.version!r}, '
                f'{len(self.individual_rules)} individual rules, '
                f'{len(self.combination_rules)} combination rules)')

    def individual_scores(self, gene: Union[Gene, str]) -> Dict[DrugClass, Dict[Drug, Dict[Mutation, float]]]:
        gene_name = getattr(gene, 'name', gene)
        return group_rule_scores(rule
                                 for rule in self.individual_rules
                                 if rule.drug_class.gene == gene_name)

    def combo_scores(self, gene: Union[Gene, str]) -> Dict[DrugClass, Dict[Drug, Dict[MutationSet, float]]]:
        gene_name = getattr(gene, 'name', gene)
        return group_rule_scores(rule
                                 for rule in self.combination_rules
                                 if rule.drug_class.gene == gene_name)

    def thresholds_for(self, drug: Drug) -> LevelThresholds:
        return self.drug_thresholds.get(drug, self.thresholds)

    def comments_for(self, gene: Union[Gene, str]) -> List[CommentRule]:
        gene_name = getattr(gene, 'name', gene)
        return [rule
                for rule in self.comment_rules
                if rule.trigger.gene == gene_name]

    @cached_property
    def drms(self) -> MutationSet:
        """ Every mutation that appears in a scoring rule. """
        mutations: List[Mutation] = []
        for rule in self.individual_rules:
            mutations.append(rule.trigger)
        for rule in self.combination_rules:
            mutations.extend(rule.trigger)
        return MutationSet(mutations)

    @cached_property
    def drug_class_drms(self) -> Dict[DrugClass, MutationSet]:
        mutations: Dict[DrugClass, List[Mutation]] = {}
        for rule in self.individual_rules + self.combination_rules:
            mutations.setdefault(rule.drug_class, []).extend(
                get_trigger_mutations(rule.trigger))
        return {drug_class: MutationSet(class_mutations)
                for drug_class, class_mutations in mutations.items()}

    def drms_for(self, drug_class: DrugClass = None) -> MutationSet:
        if drug_class is None:
            return self.drms
        return self.drug_class_drms.get(drug_class, MutationSet())

    def get_drms(self, mutations: MutationSet, drug_class: DrugClass = None) -> MutationSet:
        return MutationSet(mutation
                           for mutation in mutations
                           if self.is_drm(mutation, drug_class))

    def get_at_drp(self, mutations: MutationSet, drug_class: DrugClass = None) -> MutationSet:
        """ Mutations at positions that some scoring rule lists. """
        return MutationSet(mutation
                           for mutation in mutations
                           if self.is_at_drp(mutation, drug_class))

    def is_drm(self, mutation: Mutation, drug_class: DrugClass = None) -> bool:
        return self.drms_for(drug_class).has_shared_aa_mutation(mutation,
                                                                ignore_ambiguous=False)

    def is_at_drp(self, mutation: Mutation, drug_class: DrugClass = None) -> bool:
        return self.drms_for(drug_class).get(mutation.gene, mutation.position) is not None

    def scorer(self, gene: Union[Gene, str]) -> ResistanceScorer:
        """ Get the scorer for a gene, building it on first use. """
        gene_name = getattr(gene, 'name', gene)
        scorer = self._scorers.get(gene_name)
        if scorer is None:
            scorer = ResistanceScorer(ScoringStrategy.from_repository(self),
                                      self.catalog.get_gene(gene_name))
            # Racing threads build equal scorers, and either one may win.
            self._scorers[gene_name] = scorer
        return scorer

    def evaluate(self,
                 mutations: MutationSet,
                 genes: Iterable[str] = None) -> Dict[str, GeneResistance]:
        """ Score a sample's mutations in each gene.

        :param mutations: mutations from any genes
        :param genes: names of the genes to score, or None to score the genes
            that have mutations.
        :return: {gene_name: resistance}
        """
        if genes is None:
            genes = dict.fromkeys(mutation.gene for mutation in mutations)
        return {gene_name: self.scorer(gene_name).evaluate(mutations)
                for gene_name in genes}


def parse_score_row(row: dict, catalog: GeneCatalog) -> ScoreRule:
    gene = catalog.get_gene(row['gene'])
    drug = catalog.get_drug(row['drug'])
    drug_class = check_drug_class(gene, drug, catalog)
    mutation = Mutation.parse(f"{row['position']}{row['aa']}",
                              gene.name,
                              gene.reference)
    if mutation.position > gene.length:
        raise ValueError(f'Position {mutation.position} is past the end of {gene}.')
    return ScoreRule(drug_class, drug, mutation, float(row['score']))


def parse_combination_row(row: dict, catalog: GeneCatalog) -> ScoreRule:
    gene = catalog.get_gene(row['gene'])
    drug = catalog.get_drug(row['drug'])
    drug_class = check_drug_class(gene, drug, catalog)
    combination = parse_combination(gene, str(row['rule']))
    return ScoreRule(drug_class, drug, combination, float(row['score']))


def parse_comment_row(row: dict, catalog: GeneCatalog) -> CommentRule:
    gene = catalog.get_gene(row['gene'])
    trigger = Mutation.parse(str(row['mutation']), gene.name, gene.reference)
    return CommentRule(trigger,
                       CommentType(row['type']),
                       row['text'],
                       row.get('name', trigger.full_name))


def check_drug_class(gene: Gene, drug: Drug, catalog: GeneCatalog) -> DrugClass:
    drug_class = catalog.drug_class_of(drug)
    if drug_class.gene != gene.name:
        raise ValueError(f'{drug} is a {drug_class} drug, and does not target {gene}.')
    return drug_class


class RuleStore:
    """ Holds the current rule repository for the whole process.

    The first call to get() loads the rules, and any other threads that call
    get() at the same time wait for that load to finish. reload() loads a
    complete new repository before replacing the old one, so readers see
    either the old rules or the new rules, never a mix.
    """
    def __init__(self, loader: Callable[[], RuleRepository]):
        self._loader = loader
        self._lock = threading.Lock()
        self._repository: Optional[RuleRepository] = None

    @classmethod
    def from_path(cls, path, catalog: GeneCatalog = None) -> 'RuleStore':
        return cls(lambda: RuleRepository.load_path(path, catalog))

    @property
    def is_ready(self) -> bool:
        return self._repository is not None

    def get(self) -> RuleRepository:
        repository = self._repository
        if repository is not None:
            return repository
        with self._lock:
            if self._repository is None:
                self._repository = self._load()
            return self._repository

    def reload(self) -> RuleRepository:
        with self._lock:
            repository = self._load()
            self._repository = repository
        return repository

    def _load(self) -> RuleRepository:
        repository = self._loader()
        logger.info('Loaded %s %s rules: %d individual, %d combination.',
                    repository.algorithm,
                    repository.version,
                    len(repository.individual_rules),
                    len(repository.combination_rules))
        return repository

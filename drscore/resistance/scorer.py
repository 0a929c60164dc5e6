"""
Scores a sample's mutations in one gene against a set of scoring rules.

The rules arrive as {drug_class: {drug: {trigger: score}}}, where a trigger is
a single mutation or a combination of mutations. The scorer turns them around
once into {drug_class: {trigger: {drug: score}}}, with an explicit score for
every drug in the class, so that each evaluation only has to pick the rows
that were observed in the sample.
"""
import logging
from dataclasses import dataclass
from itertools import chain
from typing import Callable, Dict, Iterable, List, Mapping, Tuple, Union

from drscore.core.genes import Drug, DrugClass, Gene
from drscore.core.mutations import Mutation, MutationSet, MutationType
from drscore.resistance.comments import BoundComment, CommentBinder, CommentRule, CommentType
from drscore.resistance.levels import LevelThresholds, ResistanceLevels

logger = logging.getLogger(__name__)

Trigger = Union[Mutation, MutationSet]
ScoreTable = Dict[DrugClass, Dict[Trigger, Dict[Drug, float]]]


def transpose_scores(scores: Mapping[DrugClass, Mapping[Drug, Mapping[Trigger, float]]]) -> ScoreTable:
    """ Turn {drug_class: {drug: {trigger: score}}} into {drug_class: {trigger: {drug: score}}}. """
    return {
        drug_class: {
            trigger: {drug: drug_scores[trigger]
                      for drug, drug_scores in class_scores.items()
                      if trigger in drug_scores}
            for trigger in dict.fromkeys(trigger
                                         for drug_scores in class_scores.values()
                                         for trigger in drug_scores)}
        for drug_class, class_scores in scores.items()}


def densify_scores(transposed: ScoreTable) -> ScoreTable:
    """ Give every trigger a score for every drug in its class.

    Drugs without a rule for a trigger get 0.0. The drugs are the ones the
    class lists for testing, followed by any other drug that has a rule.
    """
    dense = {}
    for drug_class, trigger_scores in transposed.items():
        drugs = list(drug_class.drugs_for_testing)
        for drug_scores in trigger_scores.values():
            drugs.extend(drug for drug in drug_scores if drug not in drugs)
        dense[drug_class] = {
            trigger: {drug: drug_scores.get(drug, 0.0) for drug in drugs}
            for trigger, drug_scores in trigger_scores.items()}
    return dense


def get_trigger_mutations(trigger: Trigger) -> Iterable[Mutation]:
    if isinstance(trigger, MutationSet):
        return trigger
    return trigger,


def select_observed(table: ScoreTable, mutations: MutationSet) -> ScoreTable:
    """ Keep the rows whose trigger mutations were all observed. """
    return {drug_class: {trigger: drug_scores
                         for trigger, drug_scores in trigger_scores.items()
                         if mutations.covers(get_trigger_mutations(trigger))}
            for drug_class, trigger_scores in table.items()}


@dataclass(frozen=True)
class ScoringStrategy:
    """ Where a scorer gets its rules, thresholds, and comments. """
    name: str
    individual_scores: Callable[[Gene], Mapping[DrugClass, Mapping[Drug, Mapping[Mutation, float]]]]
    combination_scores: Callable[[Gene], Mapping[DrugClass, Mapping[Drug, Mapping[MutationSet, float]]]]
    thresholds_for: Callable[[Drug], LevelThresholds]
    comments_for: Callable[[Gene], Iterable[CommentRule]] = lambda gene: ()
    version: str = ''

    @classmethod
    def from_repository(cls, repository) -> 'ScoringStrategy':
        """ Build a strategy that reads from a RuleRepository. """
        return cls(repository.algorithm,
                   repository.individual_scores,
                   repository.combo_scores,
                   repository.thresholds_for,
                   repository.comments_for,
                   repository.version)


class ResistanceScorer:
    def __init__(self, strategy: ScoringStrategy, gene: Gene):
        self.strategy = strategy
        self.gene = gene
        self.drug_class_mut_all_drug_scores = densify_scores(
            transpose_scores(strategy.individual_scores(gene)))
        self.drug_class_combo_mut_all_drug_scores = densify_scores(
            transpose_scores(strategy.combination_scores(gene)))
        self.comment_binder = CommentBinder(strategy.comments_for(gene))
        logger.debug('Built %s scorer for %s with %d individual and %d combination rules.',
                     strategy.name,
                     gene.name,
                     sum(map(len, self.drug_class_mut_all_drug_scores.values())),
                     sum(map(len, self.drug_class_combo_mut_all_drug_scores.values())))

    def __repr__(self):
        return f'ResistanceScorer({self.strategy.name!r}, {self.gene.name!r})'

    def has_data(self, drug_class: DrugClass) -> bool:
        return (drug_class in self.drug_class_mut_all_drug_scores or
                drug_class in self.drug_class_combo_mut_all_drug_scores)

    def evaluate(self, mutations: MutationSet) -> 'GeneResistance':
        """ Score the mutations that fall in this scorer's gene. """
        return GeneResistance(self, mutations)


@dataclass(frozen=True)
class DrugResistanceResult:
    drug: Drug
    total_score: float
    level: int
    level_text: str
    sir: str
    individual_scores: Dict[Mutation, float]
    combination_scores: Dict[MutationSet, float]
    mutations: MutationSet = MutationSet()
    has_data: bool = True

    @property
    def scored(self) -> bool:
        return bool(self.individual_scores or self.combination_scores)


class GeneResistance:
    """ Resistance scores for the mutations found in one gene. """
    def __init__(self, scorer: ResistanceScorer, mutations: MutationSet):
        self.scorer = scorer
        self.gene = scorer.gene
        self.mutations = mutations.filter_by_gene(self.gene.name)
        self.algorithm = scorer.strategy.name
        self.version = scorer.strategy.version
        self.individual_scores = select_observed(
            scorer.drug_class_mut_all_drug_scores,
            self.mutations)
        self.combo_scores = select_observed(
            scorer.drug_class_combo_mut_all_drug_scores,
            self.mutations)

    def __repr__(self):
        return f'GeneResistance({self.gene.name!r}, {self.mutations.join()!r})'

    def find_drug_class(self, drug: Drug) -> DrugClass:
        for drug_class in self.gene.drug_classes:
            if drug_class.name == drug.drug_class:
                return drug_class
        raise ValueError(f'{drug} does not target {self.gene}.')

    def individual_mut_all_drug_scores_for_drug_class(
            self,
            drug_class: DrugClass) -> Dict[Mutation, Dict[Drug, float]]:
        return self.individual_scores.get(drug_class, {})

    def combo_mut_all_drug_scores_for_drug_class(
            self,
            drug_class: DrugClass) -> Dict[MutationSet, Dict[Drug, float]]:
        return self.combo_scores.get(drug_class, {})

    def drug_class_has_scored_individual_muts(self, drug_class: DrugClass) -> bool:
        return any(score != 0
                   for drug_scores in self.individual_mut_all_drug_scores_for_drug_class(
                       drug_class).values()
                   for score in drug_scores.values())

    def drug_class_has_scored_combo_muts(self, drug_class: DrugClass) -> bool:
        return any(score != 0
                   for drug_scores in self.combo_mut_all_drug_scores_for_drug_class(
                       drug_class).values()
                   for score in drug_scores.values())

    def drug_class_has_scored_muts(self, drug_class: DrugClass) -> bool:
        return (self.drug_class_has_scored_individual_muts(drug_class) or
                self.drug_class_has_scored_combo_muts(drug_class))

    def scored_individual_muts_for_drug(self, drug: Drug) -> Dict[Mutation, float]:
        """ Rule mutations with a non-zero score for the drug.

        A mixture can match several rules at one position, but only the
        highest of their scores counts.
        """
        rows = self.individual_mut_all_drug_scores_for_drug_class(
            self.find_drug_class(drug))
        best_rows: Dict[Tuple[str, int], Tuple[Mutation, float]] = {}
        for mutation, drug_scores in rows.items():
            score = drug_scores.get(drug, 0.0)
            best_row = best_rows.get(mutation.gene_position)
            if best_row is None or score > best_row[1]:
                best_rows[mutation.gene_position] = (mutation, score)
        return {mutation: score
                for mutation, score in best_rows.values()
                if score != 0}

    def scored_combo_muts_for_drug(self, drug: Drug) -> Dict[MutationSet, float]:
        rows = self.combo_mut_all_drug_scores_for_drug_class(
            self.find_drug_class(drug))
        return {combination: drug_scores[drug]
                for combination, drug_scores in rows.items()
                if drug_scores.get(drug, 0) != 0}

    def drug_has_scored_individual_muts(self, drug: Drug) -> bool:
        return bool(self.scored_individual_muts_for_drug(drug))

    def drug_has_scored_combo_muts(self, drug: Drug) -> bool:
        return bool(self.scored_combo_muts_for_drug(drug))

    def drug_has_scored_muts(self, drug: Drug) -> bool:
        return (self.drug_has_scored_individual_muts(drug) or
                self.drug_has_scored_combo_muts(drug))

    def has_data(self, drug: Drug) -> bool:
        return self.scorer.has_data(self.find_drug_class(drug))

    def total_drug_score(self, drug: Drug) -> float:
        return (sum(self.scored_individual_muts_for_drug(drug).values()) +
                sum(self.scored_combo_muts_for_drug(drug).values()))

    def drug_level(self, drug: Drug) -> ResistanceLevels:
        if not self.has_data(drug):
            return ResistanceLevels.NA
        thresholds = self.scorer.strategy.thresholds_for(drug)
        return thresholds.resistance_level(self.total_drug_score(drug))

    def drug_level_text(self, drug: Drug) -> str:
        return self.drug_level(drug).text

    def drug_level_sir(self, drug: Drug) -> str:
        return self.drug_level(drug).sir

    def drug_class_total_drug_scores(self, drug_class: DrugClass) -> Dict[Drug, float]:
        return {drug: self.total_drug_score(drug)
                for drug in drug_class.drugs_for_testing}

    def drug_result(self, drug: Drug) -> DrugResistanceResult:
        level = self.drug_level(drug)
        individual_scores = self.scored_individual_muts_for_drug(drug)
        combination_scores = self.scored_combo_muts_for_drug(drug)
        scored_positions = {mutation.gene_position
                            for trigger in chain(individual_scores, combination_scores)
                            for mutation in get_trigger_mutations(trigger)}
        contributors = MutationSet(mutation
                                   for mutation in self.mutations.sorted()
                                   if mutation.gene_position in scored_positions)
        return DrugResistanceResult(drug,
                                    self.total_drug_score(drug),
                                    level.level,
                                    level.text,
                                    level.sir,
                                    individual_scores,
                                    combination_scores,
                                    contributors,
                                    has_data=level is not ResistanceLevels.NA)

    def drug_results(self) -> List[DrugResistanceResult]:
        return [self.drug_result(drug)
                for drug_class in self.gene.drug_classes
                for drug in drug_class.drugs_for_testing]

    def group_mutations_by_types(self) -> Dict[MutationType, MutationSet]:
        return self.mutations.group_by_mutation_type(self.gene)

    def mutations_by_type(self, mutation_type: MutationType) -> MutationSet:
        return self.group_mutations_by_types().get(mutation_type, MutationSet())

    def group_comments_by_types(self) -> Dict[CommentType, List[BoundComment]]:
        return self.scorer.comment_binder.group_by_type(self.mutations)

    def comments_by_type(self, comment_type: CommentType) -> List[BoundComment]:
        return self.group_comments_by_types().get(comment_type, [])

    def drms(self, drug_class: DrugClass = None) -> MutationSet:
        """ Observed mutations that triggered a non-zero score.

        :param drug_class: only count scores for this class, or None for all
        """
        scored_positions = set()
        for table in (self.individual_scores, self.combo_scores):
            for table_class, trigger_scores in table.items():
                if drug_class is not None and table_class != drug_class:
                    continue
                for trigger, drug_scores in trigger_scores.items():
                    if any(score != 0 for score in drug_scores.values()):
                        scored_positions.update(
                            mutation.gene_position
                            for mutation in get_trigger_mutations(trigger))
        return MutationSet(mutation
                           for mutation in self.mutations.sorted()
                           if mutation.gene_position in scored_positions)

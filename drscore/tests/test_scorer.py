from unittest import TestCase

import pytest

from drscore.core.genes import Drug, DrugClass, Gene
from drscore.core.mutations import Mutation, MutationSet, MutationType
from drscore.resistance.comments import CommentType
from drscore.resistance.levels import LevelThresholds, ResistanceLevels
from drscore.resistance.scorer import (ResistanceScorer, ScoringStrategy,
                                       densify_scores, select_observed,
                                       transpose_scores)
from drscore.tests.rules_helper import TOY_GENES, TOY_RULES, load_repository


class ScoreTableTest(TestCase):
    def setUp(self):
        self.d1 = Drug('d1', 'TOY')
        self.d2 = Drug('d2', 'TOY')
        self.d3 = Drug('d3', 'TOY', tested=False)
        self.toy = DrugClass('TOY', 'G', (self.d1, self.d2, self.d3))
        self.m2v = Mutation('G', 2, 'V')
        self.m5i = Mutation('G', 5, 'I')

    def test_transpose(self):
        scores = {self.toy: {self.d1: {self.m2v: 10, self.m5i: 5},
                             self.d2: {self.m5i: 20}}}
        expected_scores = {self.toy: {self.m2v: {self.d1: 10},
                                      self.m5i: {self.d1: 5, self.d2: 20}}}

        transposed = transpose_scores(scores)

        self.assertEqual(expected_scores, transposed)

    def test_densify(self):
        transposed = {self.toy: {self.m2v: {self.d1: 10},
                                 self.m5i: {self.d3: 5}}}
        expected_scores = {self.toy: {
            self.m2v: {self.d1: 10, self.d2: 0.0, self.d3: 0.0},
            self.m5i: {self.d1: 0.0, self.d2: 0.0, self.d3: 5}}}

        dense = densify_scores(transposed)

        self.assertEqual(expected_scores, dense)
        self.assertEqual([self.d1, self.d2, self.d3],
                         list(dense[self.toy][self.m2v]))

    def test_densify_untested_drugs_left_out(self):
        transposed = {self.toy: {self.m2v: {self.d1: 10}}}

        dense = densify_scores(transposed)

        self.assertEqual({self.d1: 10, self.d2: 0.0}, dense[self.toy][self.m2v])

    def test_select_observed(self):
        combination = MutationSet([self.m2v, self.m5i])
        table = {self.toy: {self.m2v: {self.d1: 10},
                            combination: {self.d1: 15}}}

        observed = select_observed(table, MutationSet([Mutation('G', 2, 'AV')]))

        self.assertEqual({self.toy: {self.m2v: {self.d1: 10}}}, observed)


class ToyScorerTest(TestCase):
    def setUp(self):
        self.repository = load_repository(TOY_RULES, TOY_GENES)
        catalog = self.repository.catalog
        self.toy = catalog.get_drug_class('TOY')
        self.d1 = catalog.get_drug('d1')
        self.d2 = catalog.get_drug('d2')
        self.scorer = self.repository.scorer('G')

    def evaluate(self, mutations_text):
        return self.scorer.evaluate(MutationSet.parse(mutations_text, gene='G'))

    def test_densified_tables(self):
        individual_rows = self.scorer.drug_class_mut_all_drug_scores[self.toy]
        combo_rows = self.scorer.drug_class_combo_mut_all_drug_scores[self.toy]

        self.assertEqual({Mutation('G', 2, 'V'): {self.d1: 10.0, self.d2: 0.0}},
                         individual_rows)
        self.assertEqual({MutationSet.parse('2V, 5I', gene='G'): {self.d1: 15.0,
                                                                   self.d2: 0.0}},
                         combo_rows)

    def test_individual_only(self):
        resistance = self.evaluate('2V')

        self.assertEqual(10, resistance.total_drug_score(self.d1))
        self.assertFalse(resistance.drug_has_scored_combo_muts(self.d1))

    def test_combination(self):
        resistance = self.evaluate('2V, 5I')

        self.assertEqual(25, resistance.total_drug_score(self.d1))
        self.assertEqual({MutationSet.parse('2V + 5I', gene='G'): 15.0},
                         resistance.scored_combo_muts_for_drug(self.d1))

    def test_partial_combination(self):
        resistance = self.evaluate('5I')

        self.assertEqual(0, resistance.total_drug_score(self.d1))
        self.assertFalse(resistance.drug_class_has_scored_muts(self.toy))
        self.assertEqual({}, resistance.combo_mut_all_drug_scores_for_drug_class(self.toy))

    def test_drug_without_rules(self):
        resistance = self.evaluate('2V, 5I')

        self.assertEqual(0, resistance.total_drug_score(self.d2))
        self.assertFalse(resistance.drug_has_scored_muts(self.d2))
        self.assertTrue(resistance.drug_class_has_scored_muts(self.toy))
        self.assertTrue(resistance.drug_class_has_scored_individual_muts(self.toy))
        self.assertTrue(resistance.drug_class_has_scored_combo_muts(self.toy))
        self.assertEqual(
            {Mutation('G', 2, 'V'): {self.d1: 10.0, self.d2: 0.0}},
            resistance.individual_mut_all_drug_scores_for_drug_class(self.toy))
        self.assertEqual(ResistanceLevels.SUSCEPTIBLE, resistance.drug_level(self.d2))
        self.assertTrue(resistance.drug_result(self.d2).has_data)

    def test_no_mutations(self):
        resistance = self.evaluate('')

        self.assertEqual({self.d1: 0, self.d2: 0},
                         resistance.drug_class_total_drug_scores(self.toy))
        self.assertEqual(ResistanceLevels.SUSCEPTIBLE, resistance.drug_level(self.d1))


class HivdbScorerTest(TestCase):
    def setUp(self):
        self.repository = load_repository()
        self.catalog = self.repository.catalog
        self.nrti = self.catalog.get_drug_class('NRTI')
        self.nnrti = self.catalog.get_drug_class('NNRTI')

    def evaluate(self, mutations_text, gene_name='RT'):
        gene = self.catalog.get_gene(gene_name)
        mutations = MutationSet.parse(mutations_text, gene_name, gene.reference)
        return self.repository.scorer(gene_name).evaluate(mutations)

    def drug(self, name):
        return self.catalog.get_drug(name)

    def test_tam_combination(self):
        resistance = self.evaluate('M41L, T215Y')
        expected_scores = {'3TC': 0,
                           'ABC': 10,
                           'AZT': 70,
                           'D4T': 15,
                           'DDI': 0,
                           'FTC': 0,
                           'TDF': 0}

        scores = resistance.drug_class_total_drug_scores(self.nrti)

        self.assertEqual(expected_scores,
                         {drug.name: score for drug, score in scores.items()})

    def test_levels(self):
        resistance = self.evaluate('M41L, T215Y')
        azt = self.drug('AZT')
        d4t = self.drug('D4T')

        self.assertEqual(ResistanceLevels.HIGH, resistance.drug_level(azt))
        self.assertEqual('High-Level Resistance', resistance.drug_level_text(azt))
        self.assertEqual('R', resistance.drug_level_sir(azt))
        self.assertEqual('Low-Level Resistance', resistance.drug_level_text(d4t))
        self.assertEqual('I', resistance.drug_level_sir(d4t))

    def test_negative_score(self):
        resistance = self.evaluate('M41L, M184V')
        azt = self.drug('AZT')

        self.assertEqual({Mutation('RT', 41, 'L'): 15.0,
                          Mutation('RT', 184, 'V'): -10.0},
                         resistance.scored_individual_muts_for_drug(azt))
        self.assertEqual(5, resistance.total_drug_score(azt))
        self.assertTrue(resistance.drug_has_scored_individual_muts(azt))

    def test_mixture(self):
        resistance = self.evaluate('M184IV')

        self.assertEqual(60, resistance.total_drug_score(self.drug('3TC')))
        self.assertEqual('M184IV',
                         resistance.drug_result(self.drug('3TC')).mutations.join())

    def test_drug_results(self):
        resistance = self.evaluate('M41L, T215Y')

        results = resistance.drug_results()

        self.assertEqual(['3TC', 'ABC', 'AZT', 'D4T', 'DDI', 'FTC', 'TDF',
                          'DOR', 'EFV', 'ETR', 'NVP', 'RPV'],
                         [result.drug.name for result in results])
        azt_result = results[2]
        self.assertEqual(70, azt_result.total_score)
        self.assertEqual(5, azt_result.level)
        self.assertEqual('R', azt_result.sir)
        self.assertTrue(azt_result.scored)
        self.assertEqual('M41L, T215Y', azt_result.mutations.join())
        efv_result = results[8]
        self.assertEqual(1, efv_result.level)
        self.assertTrue(efv_result.has_data)
        self.assertFalse(efv_result.scored)

    def test_drug_class_without_data(self):
        resistance = self.evaluate('Q148H', gene_name='IN')
        dtg = self.drug('DTG')

        result = resistance.drug_result(dtg)

        self.assertEqual(ResistanceLevels.NA, resistance.drug_level(dtg))
        self.assertEqual(0, result.total_score)
        self.assertEqual(-1, result.level)
        self.assertEqual('', result.sir)
        self.assertFalse(result.has_data)
        self.assertEqual({}, result.individual_scores)

    def test_drug_from_other_gene(self):
        resistance = self.evaluate('M41L')

        with self.assertRaisesRegex(ValueError, 'ATV/r does not target RT'):
            resistance.total_drug_score(self.drug('ATV/r'))

    def test_ignores_other_genes(self):
        mutations = MutationSet.parse('RT:M41L, PR:I84V')

        resistance = self.repository.scorer('RT').evaluate(mutations)

        self.assertEqual('M41L', resistance.mutations.join())

    def test_mutation_types(self):
        resistance = self.evaluate('M41L, T215Y, V179I')

        groups = resistance.group_mutations_by_types()

        self.assertEqual({MutationType.NRTI: 'M41L, T215Y',
                          MutationType.NNRTI: '',
                          MutationType.OTHER: 'V179I'},
                         {mutation_type: group.join()
                          for mutation_type, group in groups.items()})
        self.assertEqual('V179I',
                         resistance.mutations_by_type(MutationType.OTHER).join())

    def test_comments(self):
        resistance = self.evaluate('M41L, K103N')

        groups = resistance.group_comments_by_types()

        self.assertEqual([CommentType.NRTI, CommentType.NNRTI], list(groups))
        self.assertEqual(['M41L is a TAM.'],
                         [comment.text
                          for comment in resistance.comments_by_type(CommentType.NRTI)])
        self.assertEqual([], resistance.comments_by_type(CommentType.DOSAGE))

    def test_drms(self):
        resistance = self.evaluate('M41L, T215Y, K103N, V179I')

        self.assertEqual('M41L, K103N, T215Y', resistance.drms().join())
        self.assertEqual('M41L, T215Y', resistance.drms(self.nrti).join())
        self.assertEqual('K103N', resistance.drms(self.nnrti).join())


def test_custom_strategy():
    drug = Drug('d1', 'TOY')
    drug_class = DrugClass('TOY', 'G', (drug,))
    gene = Gene('G', 'ACDEFGHIKL', (drug_class,))
    mutation = Mutation('G', 2, 'V')
    strategy = ScoringStrategy(
        'custom',
        individual_scores=lambda g: {drug_class: {drug: {mutation: 30}}},
        combination_scores=lambda g: {},
        thresholds_for=lambda d: LevelThresholds.parse('(-INF TO 29 => 1, 30 TO INF => 4)'))
    scorer = ResistanceScorer(strategy, gene)

    resistance = scorer.evaluate(MutationSet([mutation]))

    assert resistance.drug_level(drug) is ResistanceLevels.INTERMEDIATE
    assert resistance.algorithm == 'custom'
    assert resistance.group_comments_by_types() == {}
    assert repr(scorer) == "ResistanceScorer('custom', 'G')"


@pytest.mark.parametrize('mutations_text,expected_total', [('2V', 10),
                                                           ('2V, 5I', 25),
                                                           ('5I', 0),
                                                           ('2AV, 5I', 25),
                                                           ('', 0)])
def test_combination_all_or_nothing(mutations_text, expected_total):
    repository = load_repository(TOY_RULES, TOY_GENES)
    d1 = repository.catalog.get_drug('d1')

    resistance = repository.scorer('G').evaluate(
        MutationSet.parse(mutations_text, gene='G'))

    assert resistance.total_drug_score(d1) == expected_total


@pytest.mark.parametrize('mutations_text,expected_total', [('2I', 20),
                                                           ('2V', 10),
                                                           ('2IV', 20),
                                                           ('2IV, 5I', 35)])
def test_mixture_scores_best_rule_at_position(mutations_text, expected_total):
    rules_text = TOY_RULES.replace(
        'scores:\n',
        'scores:\n  - {gene: G, drug: d1, position: 2, aa: I, score: 20}\n')
    repository = load_repository(rules_text, TOY_GENES)
    d1 = repository.catalog.get_drug('d1')

    resistance = repository.scorer('G').evaluate(
        MutationSet.parse(mutations_text, gene='G'))

    assert resistance.total_drug_score(d1) == expected_total


def test_mixture_of_equal_rules_counts_once():
    rules_text = TOY_RULES.replace(
        'score: 10}',
        'score: 60}\n  - {gene: G, drug: d1, position: 2, aa: I, score: 60}')
    repository = load_repository(rules_text, TOY_GENES)
    d1 = repository.catalog.get_drug('d1')

    resistance = repository.scorer('G').evaluate(MutationSet.parse('2IV', gene='G'))
    result = resistance.drug_result(d1)

    assert result.total_score == 60
    assert len(result.individual_scores) == 1
    assert result.mutations.join() == '2IV'

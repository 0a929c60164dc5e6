"""
Compare how several rule sets interpret the same mutations.
"""
from collections import namedtuple
from typing import Dict, Iterable, List

from drscore.core.mutations import MutationSet
from drscore.resistance.scorer import DrugResistanceResult

ComparableDrugScore = namedtuple(
    'ComparableDrugScore',
    'drug algorithm sir interpretation explanation')


def format_score(score: float) -> str:
    return f'{score:g}'


def explain(result: DrugResistanceResult) -> str:
    """ List the scores that add up to a drug's total. """
    if not result.has_data:
        return 'No rules for this drug.'
    if not result.scored:
        return 'No scored mutations.'
    lines = [f'{mutation} ({format_score(score)})'
             for mutation, score in result.individual_scores.items()]
    lines.extend(f"{combination.join(' + ')} ({format_score(score)})"
                 for combination, score in result.combination_scores.items())
    lines.append(f'Total score: {format_score(result.total_score)}')
    return '\n'.join(lines)


def compare_algorithms(mutations: MutationSet,
                       repositories: Iterable,
                       genes: Iterable[str] = None) -> List[Dict[str, object]]:
    """ Score mutations with each repository, and group scores by drug class.

    :param mutations: mutations from one sample
    :param repositories: RuleRepository objects, one for each algorithm
    :param genes: names of the genes to score, or None for the genes with
        mutations
    :return: [{'drug_class': drug_class, 'drug_scores': [ComparableDrugScore]}]
    """
    if genes is not None:
        genes = list(genes)
    groups = {}
    for repository in repositories:
        algorithm = ' '.join(filter(None, [repository.algorithm,
                                           repository.version]))
        for gene_resistance in repository.evaluate(mutations, genes).values():
            for drug_class in gene_resistance.gene.drug_classes:
                drug_scores = groups.setdefault(drug_class, [])
                for drug in drug_class.drugs_for_testing:
                    result = gene_resistance.drug_result(drug)
                    drug_scores.append(ComparableDrugScore(drug,
                                                           algorithm,
                                                           result.sir,
                                                           result.level_text,
                                                           explain(result)))
    return [dict(drug_class=drug_class, drug_scores=drug_scores)
            for drug_class, drug_scores in groups.items()]

#!/usr/bin/env python
"""
Make resistance calls from lists of mutations.

Each row of the input CSV lists one sample's mutations in one gene:

    sample,gene,mutations
    E1234,RT,"M41L, T215Y"
"""
import logging.config
import os
import sys
from argparse import ArgumentParser, ArgumentDefaultsHelpFormatter
from csv import DictReader, DictWriter
from itertools import groupby
from operator import itemgetter
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Sequence, Tuple

from drscore.core.genes import GeneCatalog
from drscore.core.mutations import MutationSet
from drscore.resistance.rules import RuleRepository
from drscore.resistance.scorer import GeneResistance
from drscore.utils.errors import DRScoreError
try:
    from drscore.utils.drscore_logging_override import LOGGING  # type: ignore[import]
except ImportError:
    from drscore.utils.drscore_logging_config import LOGGING

logger = logging.getLogger(__name__)


def parse_args(argv: Sequence[str]):
    parser = ArgumentParser(
        description='Make resistance calls from lists of mutations.',
        formatter_class=ArgumentDefaultsHelpFormatter)
    parser.add_argument('mutations_csv',
                        type=Path,
                        help='sample, gene, and mutations on each row')
    parser.add_argument('rules_yaml',
                        type=Path,
                        help='scoring rules')
    parser.add_argument('resistance_csv',
                        type=Path,
                        help='resistance calls for each drug')
    parser.add_argument('mutations_out_csv',
                        type=Path,
                        help='scored mutations for each drug class')
    parser.add_argument('--genes',
                        type=Path,
                        help='gene and drug catalog, if not the standard HIV-1 one')
    return parser.parse_args(argv)


def read_mutations(mutations_csv: Iterable[str],
                   catalog: GeneCatalog) -> Iterator[Tuple[str, List[str], MutationSet]]:
    """ Read each sample's mutations, from rows grouped by sample.

    :return: a sequence of (sample, gene_names, mutations) tuples
    """
    for sample, rows in groupby(DictReader(mutations_csv), itemgetter('sample')):
        gene_names = []
        mutations = []
        for row in rows:
            try:
                gene = catalog.get_gene(row['gene'])
                if gene.name not in gene_names:
                    gene_names.append(gene.name)
                mutations.extend(MutationSet.parse(row['mutations'],
                                                   gene.name,
                                                   gene.reference))
            except ValueError as ex:
                raise DRScoreError('Invalid mutations for sample %s: %s',
                                   sample,
                                   ex) from ex
        yield sample, gene_names, MutationSet(mutations)


def write_resistance(samples: Iterable[Tuple[str, Dict[str, GeneResistance]]],
                     resistance_csv,
                     mutations_csv):
    """ Write resistance calls and scored mutations.

    :param samples: a sequence of (sample, {gene_name: resistance}) pairs
    :param resistance_csv: open file to write resistance calls to
    :param mutations_csv: open file to write scored mutations to
    """
    resistance_writer = DictWriter(resistance_csv,
                                   ['sample',
                                    'gene',
                                    'drug_class',
                                    'drug',
                                    'score',
                                    'level',
                                    'level_name',
                                    'sir'],
                                   lineterminator=os.linesep)
    resistance_writer.writeheader()
    mutations_writer = DictWriter(mutations_csv,
                                  ['sample', 'gene', 'drug_class', 'mutation'],
                                  lineterminator=os.linesep)
    mutations_writer.writeheader()
    for sample, gene_results in samples:
        for gene_name, gene_resistance in gene_results.items():
            for drug_result in gene_resistance.drug_results():
                resistance_writer.writerow(dict(sample=sample,
                                                gene=gene_name,
                                                drug_class=drug_result.drug.drug_class,
                                                drug=drug_result.drug.name,
                                                score=f'{drug_result.total_score:g}',
                                                level=drug_result.level,
                                                level_name=drug_result.level_text,
                                                sir=drug_result.sir))
            for drug_class in gene_resistance.gene.drug_classes:
                for mutation in gene_resistance.drms(drug_class):
                    mutations_writer.writerow(dict(sample=sample,
                                                   gene=gene_name,
                                                   drug_class=drug_class.name,
                                                   mutation=mutation.name))


def report_resistance(mutations_csv: Path,
                      rules_yaml: Path,
                      resistance_csv: Path,
                      mutations_out_csv: Path,
                      genes_yaml: Path = None):
    if genes_yaml is None:
        catalog = GeneCatalog.load()
    else:
        with genes_yaml.open() as f:
            catalog = GeneCatalog.load(f)
    repository = RuleRepository.load_path(rules_yaml, catalog)
    logger.info('Scoring %s with %r.', mutations_csv, repository)
    with mutations_csv.open(newline='') as mutations_file, \
            resistance_csv.open('w', newline='') as resistance_file, \
            mutations_out_csv.open('w', newline='') as mutations_out_file:
        samples = ((sample, repository.evaluate(mutations, gene_names))
                   for sample, gene_names, mutations in read_mutations(
                       mutations_file,
                       catalog))
        write_resistance(samples, resistance_file, mutations_out_file)


def main(argv: Sequence[str]) -> int:
    args = parse_args(argv)
    report_resistance(args.mutations_csv,
                      args.rules_yaml,
                      args.resistance_csv,
                      args.mutations_out_csv,
                      args.genes)
    return 0


def entry() -> None:
    logging.config.dictConfig(LOGGING)
    try:
        rc = main(sys.argv[1:])
        logger.debug("Done.")
    except BrokenPipeError:
        logger.debug("Broken pipe.")
        rc = 1
    except KeyboardInterrupt:
        logger.debug("Interrupted.")
        rc = 1
    except DRScoreError as e:
        logger.fatal(e.fmt, *e.fmt_args)
        rc = e.code

    sys.exit(rc)


if __name__ == "__main__": entry()  # noqa

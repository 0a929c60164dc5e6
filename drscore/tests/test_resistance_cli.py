import logging
import sys
from io import StringIO
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest

from drscore.core.mutations import MutationSet
from drscore.resistance import resistance
from drscore.resistance.resistance import (main, parse_args, read_mutations,
                                           write_resistance)
from drscore.tests.rules_helper import HIVDB_RULES, load_catalog, load_repository
from drscore.utils.errors import DRScoreError, RuleLoadError
from drscore.utils.drscore_logging_config import LOG_FILE, LOGGING


def test_parse_args():
    args = parse_args(['mutations.csv', 'rules.yaml', 'resistance.csv', 'out.csv'])

    assert args.mutations_csv == Path('mutations.csv')
    assert args.rules_yaml == Path('rules.yaml')
    assert args.resistance_csv == Path('resistance.csv')
    assert args.mutations_out_csv == Path('out.csv')
    assert args.genes is None


def test_read_mutations():
    mutations_csv = StringIO("""\
sample,gene,mutations
E1,RT,"M41L, T215Y"
E1,PR,I84V
E2,IN,
""")

    samples = list(read_mutations(mutations_csv, load_catalog()))

    assert [(sample, gene_names, mutations.join())
            for sample, gene_names, mutations in samples] == [
        ('E1', ['RT', 'PR'], 'I84V, M41L, T215Y'),
        ('E2', ['IN'], '')]


def test_read_invalid_mutations():
    mutations_csv = StringIO("""\
sample,gene,mutations
E1,RT,M41?
""")

    with pytest.raises(DRScoreError, match=r"Invalid mutations for sample E1"):
        list(read_mutations(mutations_csv, load_catalog()))


def test_read_unknown_gene():
    mutations_csv = StringIO("""\
sample,gene,mutations
E1,NS3,Q80K
""")

    with pytest.raises(DRScoreError, match=r"Unknown gene: 'NS3'"):
        list(read_mutations(mutations_csv, load_catalog()))


def test_write_resistance():
    repository = load_repository()
    mutations = MutationSet.parse('RT:M41L, RT:T215Y')
    resistance_csv = StringIO()
    mutations_csv = StringIO()
    expected_mutations = """\
sample,gene,drug_class,mutation
E1,RT,NRTI,M41L
E1,RT,NRTI,T215Y
"""

    write_resistance([('E1', repository.evaluate(mutations))],
                     resistance_csv,
                     mutations_csv)

    resistance_lines = resistance_csv.getvalue().splitlines()
    assert resistance_lines[0] == 'sample,gene,drug_class,drug,score,level,level_name,sir'
    assert resistance_lines[1] == 'E1,RT,NRTI,3TC,0,1,Susceptible,S'
    assert resistance_lines[3] == 'E1,RT,NRTI,AZT,70,5,High-Level Resistance,R'
    assert len(resistance_lines) == 13
    assert mutations_csv.getvalue().splitlines() == expected_mutations.splitlines()


def test_main(tmp_path):
    mutations_path = tmp_path / 'mutations.csv'
    rules_path = tmp_path / 'rules.yaml'
    resistance_path = tmp_path / 'resistance.csv'
    mutations_out_path = tmp_path / 'mutations_out.csv'
    mutations_path.write_text("""\
sample,gene,mutations
E1,PR,I84V
E2,IN,
""")
    rules_path.write_text(HIVDB_RULES)
    expected_resistance = """\
sample,gene,drug_class,drug,score,level,level_name,sir
E1,PR,PI,ATV/r,30,4,Intermediate Resistance,I
E1,PR,PI,DRV/r,0,1,Susceptible,S
E1,PR,PI,FPV/r,0,1,Susceptible,S
E1,PR,PI,IDV/r,0,1,Susceptible,S
E1,PR,PI,LPV/r,0,1,Susceptible,S
E1,PR,PI,NFV,0,1,Susceptible,S
E1,PR,PI,SQV/r,0,1,Susceptible,S
E1,PR,PI,TPV/r,0,1,Susceptible,S
E2,IN,INSTI,BIC,0,-1,Resistance Interpretation Not Available,
E2,IN,INSTI,CAB,0,-1,Resistance Interpretation Not Available,
E2,IN,INSTI,DTG,0,-1,Resistance Interpretation Not Available,
E2,IN,INSTI,EVG,0,-1,Resistance Interpretation Not Available,
E2,IN,INSTI,RAL,0,-1,Resistance Interpretation Not Available,
"""
    expected_mutations = """\
sample,gene,drug_class,mutation
E1,PR,PI,I84V
"""

    rc = main([str(mutations_path),
               str(rules_path),
               str(resistance_path),
               str(mutations_out_path)])

    assert rc == 0
    assert resistance_path.read_text().splitlines() == expected_resistance.splitlines()
    assert mutations_out_path.read_text().splitlines() == expected_mutations.splitlines()


def test_main_bad_rules(tmp_path):
    mutations_path = tmp_path / 'mutations.csv'
    rules_path = tmp_path / 'rules.yaml'
    mutations_path.write_text('sample,gene,mutations\n')
    rules_path.write_text('levels: [unclosed')

    with pytest.raises(RuleLoadError):
        main([str(mutations_path),
              str(rules_path),
              str(tmp_path / 'resistance.csv'),
              str(tmp_path / 'mutations_out.csv')])


def test_entry_reports_load_error(tmp_path, monkeypatch, caplog):
    mutations_path = tmp_path / 'mutations.csv'
    mutations_path.write_text('sample,gene,mutations\n')
    configs = []
    monkeypatch.setattr(resistance.logging.config, 'dictConfig', configs.append)
    monkeypatch.setattr(sys, 'argv', ['drscore-resistance',
                                      str(mutations_path),
                                      str(tmp_path / 'missing.yaml'),
                                      str(tmp_path / 'resistance.csv'),
                                      str(tmp_path / 'mutations_out.csv')])

    with pytest.raises(SystemExit) as exinfo:
        resistance.entry()

    assert exinfo.value.code == 2
    assert configs == [LOGGING]
    assert 'Cannot read rules from' in caplog.text


def test_logging_config():
    assert set(LOGGING['root']['handlers']) <= set(LOGGING['handlers'])
    assert LOGGING['handlers']['file']['filename'] == LOG_FILE


def test_library_use_leaves_logging_alone():
    repository = load_repository()

    repository.evaluate(MutationSet.parse('RT:M41L'))

    assert not any(isinstance(handler, RotatingFileHandler)
                   for handler in logging.getLogger().handlers)

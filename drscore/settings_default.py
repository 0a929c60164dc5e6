"""
Default settings for the scoring engine.

To change them, copy this file to settings.py in the same folder and edit the
copy. Do not commit settings.py to source control.
"""
from pathlib import Path

DATA_PATH = Path(__file__).parent / 'data'

# Gene references, drug classes, and mutation classification tables.
genes_path = DATA_PATH / 'hiv1_genes.yaml'

# A codon is highly ambiguous when it translates to more amino acids than this.
max_mixture_aas = 4

# Unknown codons don't count against the match percentage.
unknown_triplet = 'NNN'

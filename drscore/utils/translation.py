"""
Utility functions for translating nucleotides (codons) into amino acids.
"""
import re

codon_dict = {'TTT': 'F', 'TTC': 'F', 'TTA': 'L', 'TTG': 'L',
              'TCT': 'S', 'TCC': 'S', 'TCA': 'S', 'TCG': 'S',
              'TAT': 'Y', 'TAC': 'Y', 'TAA': '*', 'TAG': '*',
              'TGT': 'C', 'TGC': 'C', 'TGA': '*', 'TGG': 'W',
              'CTT': 'L', 'CTC': 'L', 'CTA': 'L', 'CTG': 'L',
              'CCT': 'P', 'CCC': 'P', 'CCA': 'P', 'CCG': 'P',
              'CAT': 'H', 'CAC': 'H', 'CAA': 'Q', 'CAG': 'Q',
              'CGT': 'R', 'CGC': 'R', 'CGA': 'R', 'CGG': 'R',
              'ATT': 'I', 'ATC': 'I', 'ATA': 'I', 'ATG': 'M',
              'ACT': 'T', 'ACC': 'T', 'ACA': 'T', 'ACG': 'T',
              'AAT': 'N', 'AAC': 'N', 'AAA': 'K', 'AAG': 'K',
              'AGT': 'S', 'AGC': 'S', 'AGA': 'R', 'AGG': 'R',
              'GTT': 'V', 'GTC': 'V', 'GTA': 'V', 'GTG': 'V',
              'GCT': 'A', 'GCC': 'A', 'GCA': 'A', 'GCG': 'A',
              'GAT': 'D', 'GAC': 'D', 'GAA': 'E', 'GAG': 'E',
              'GGT': 'G', 'GGC': 'G', 'GGA': 'G', 'GGG': 'G'}
mixture_regex = re.compile('[WRKYSMBDHVN]')
mixture_dict = {'W': 'AT', 'R': 'AG', 'K': 'GT', 'Y': 'CT', 'S': 'CG',
                'M': 'AC', 'V': 'AGC', 'H': 'ATC', 'D': 'ATG',
                'B': 'TGC', 'N': 'ATGC'}
GAP_CODON = '---'


def expand_mixtures(codon):
    """ List every unambiguous codon that a mixed codon could stand for. """
    codons = [codon]
    while True:
        next_codons = []
        for codon in codons:
            mixtures = mixture_regex.findall(codon)
            if not mixtures:
                next_codons.append(codon)
                continue
            pos = codon.index(mixtures[0])
            for nuc in mixture_dict[mixtures[0]]:
                next_codons.append(codon[:pos] + nuc + codon[pos+1:])
        if len(codons) == len(next_codons):
            # no change in number of codons, exit
            return codons
        codons = next_codons


def translate_codon(codon, ambig_char='X'):
    """ Translate a single codon, listing all amino acids for mixtures.

    :param str codon: three nucleotides, possibly with mixtures or gaps
    :param str ambig_char: returned for codons that can't be translated
    :return: a sorted string of all possible amino acids, '-' for a gap
        codon, or ambig_char for partial or unreadable codons.
    """
    codon = codon.upper()
    if codon == GAP_CODON:
        return '-'
    if len(codon) != 3 or '-' in codon or '?' in codon:
        return ambig_char
    try:
        aminos = {codon_dict[expanded] for expanded in expand_mixtures(codon)}
    except KeyError:
        return ambig_char
    return ''.join(sorted(aminos))


def translate(seq, offset=0, ambig_char='X', max_aminos=1):
    """
    Translate codon (nucleotide) sequence into amino acids.
    :param str seq: the nucleotide sequence
    :param int offset: prefix nucleotide sequence by X bases to shift reading frame
    :param str ambig_char: character to use for codons with more than
        max_aminos possible translations
    :param int max_aminos: mixtures that translate to this many amino acids
        or fewer are written in brackets, like [FY]
    :return: string (AA sequence)
    """
    seq = '-'*offset + seq
    aa_seq = ''
    for codon_site in range(0, len(seq) - 2, 3):
        aminos = translate_codon(seq[codon_site:codon_site+3], ambig_char)
        if len(aminos) == 1:
            aa_seq += aminos
        elif len(aminos) <= max_aminos:
            aa_seq += '[{}]'.format(aminos)
        else:
            aa_seq += ambig_char
    return aa_seq

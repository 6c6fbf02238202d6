"""
Codon alignment parsing.

Codons are encoded as indices into the 61 sense codons of the standard
genetic code, ordered with nucleotides T, C, A, G (PAML ordering).
"""

import re
from dataclasses import dataclass
from pathlib import Path

import numpy as np


GENETIC_CODE = {
    'TTT': 'F', 'TTC': 'F', 'TTA': 'L', 'TTG': 'L',
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
    'GGT': 'G', 'GGC': 'G', 'GGA': 'G', 'GGG': 'G',
}

NUCLEOTIDES = 'TCAG'
NUCLEOTIDE_TO_INDEX = {nuc: i for i, nuc in enumerate(NUCLEOTIDES)}

# Codon i of the 64 has index n0*16 + n1*4 + n2; stop codons are skipped
CODONS = [
    a + b + c
    for a in NUCLEOTIDES
    for b in NUCLEOTIDES
    for c in NUCLEOTIDES
    if GENETIC_CODE[a + b + c] != '*'
]
CODON_TO_INDEX = {codon: i for i, codon in enumerate(CODONS)}
INDEX_TO_CODON = {i: codon for i, codon in enumerate(CODONS)}
N_CODONS = len(CODONS)

# Missing data codes
GAP_CODE = 64
UNKNOWN_CODE = -1


@dataclass
class Alignment:
    """
    Codon alignment.

    Attributes
    ----------
    names : list[str]
        Sequence names
    sequences : ndarray, shape (n_species, n_sites)
        Codon indices (0-60), GAP_CODE or UNKNOWN_CODE
    n_species : int
        Number of sequences
    n_sites : int
        Number of codon sites
    """

    names: list[str]
    sequences: np.ndarray
    n_species: int
    n_sites: int

    @classmethod
    def from_sequences(cls, names: list[str], sequences: list[str]) -> "Alignment":
        """
        Build an alignment from raw nucleotide strings.

        Parameters
        ----------
        names : list[str]
            Sequence names
        sequences : list[str]
            Aligned nucleotide sequences (length divisible by 3)
        """
        if len(names) != len(sequences):
            raise ValueError(
                f"Got {len(names)} names but {len(sequences)} sequences"
            )
        if not sequences:
            raise ValueError("Alignment has no sequences")

        clean = [re.sub(r'\s', '', seq).upper() for seq in sequences]
        lengths = {len(seq) for seq in clean}
        if len(lengths) > 1:
            raise ValueError(f"Sequences have different lengths: {lengths}")

        n_chars = lengths.pop()
        if n_chars % 3 != 0:
            raise ValueError(f"Codon sequence length {n_chars} not divisible by 3")

        return cls(
            names=list(names),
            sequences=cls._encode_codons(clean),
            n_species=len(names),
            n_sites=n_chars // 3,
        )

    @classmethod
    def from_phylip(cls, filepath: Path | str) -> "Alignment":
        """
        Parse a PAML-style sequential PHYLIP codon alignment.

        The first line holds the number of sequences and the number of
        nucleotides; each sequence starts with a name line followed by
        sequence data.
        """
        filepath = Path(filepath)

        with open(filepath, 'r') as f:
            lines = [line.rstrip() for line in f.readlines()]

        while lines and not lines[0].strip():
            lines.pop(0)
        if not lines:
            raise ValueError(f"Empty PHYLIP file: {filepath}")

        header = lines[0].split()
        if len(header) < 2:
            raise ValueError(f"Invalid PHYLIP header: {lines[0]!r}")
        n_species = int(header[0])
        n_chars = int(header[1])

        names = []
        sequences_raw = []

        i = 1
        while i < len(lines) and len(names) < n_species:
            line = lines[i].strip()
            i += 1
            if not line:
                continue

            names.append(line)

            seq_data = ""
            while i < len(lines):
                line = lines[i].strip()
                if not line:
                    i += 1
                    continue
                if len(seq_data) >= n_chars:
                    break
                seq_data += re.sub(r'\s', '', line).upper()
                i += 1

            sequences_raw.append(seq_data)

        if len(names) != n_species:
            raise ValueError(f"Expected {n_species} sequences, found {len(names)}")

        for name, seq in zip(names, sequences_raw):
            if len(seq) != n_chars:
                raise ValueError(
                    f"Sequence {name} has length {len(seq)}, expected {n_chars}"
                )

        return cls.from_sequences(names, sequences_raw)

    @classmethod
    def from_fasta(cls, filepath: Path | str) -> "Alignment":
        """
        Parse a FASTA codon alignment.

        Examples
        --------
        >>> aln = Alignment.from_fasta("alignment.fasta")
        """
        filepath = Path(filepath)

        names = []
        sequences_raw = []

        with open(filepath, 'r') as f:
            current_name = None
            current_seq = []

            for line in f:
                line = line.strip()
                if not line:
                    continue

                if line.startswith('>'):
                    if current_name is not None:
                        names.append(current_name)
                        sequences_raw.append(''.join(current_seq))
                    current_name = line[1:].strip()
                    current_seq = []
                else:
                    current_seq.append(line)

            if current_name is not None:
                names.append(current_name)
                sequences_raw.append(''.join(current_seq))

        if not names:
            raise ValueError("No sequences found in FASTA file")

        return cls.from_sequences(names, sequences_raw)

    @staticmethod
    def _encode_codons(sequences: list[str]) -> np.ndarray:
        """
        Encode codon sequences as integer arrays.

        Returns
        -------
        encoded : ndarray, shape (n_sequences, n_codons)
            Codon index (0-60), GAP_CODE (64) for '---' or UNKNOWN_CODE (-1)
            for stop codons and ambiguous characters
        """
        n_codons = len(sequences[0]) // 3
        encoded = np.zeros((len(sequences), n_codons), dtype=np.int8)

        for i, seq in enumerate(sequences):
            for j in range(n_codons):
                codon = seq[j * 3 : j * 3 + 3]
                if codon == '---':
                    encoded[i, j] = GAP_CODE
                elif codon in CODON_TO_INDEX:
                    encoded[i, j] = CODON_TO_INDEX[codon]
                else:
                    encoded[i, j] = UNKNOWN_CODE

        return encoded

    def __repr__(self) -> str:
        return f"Alignment(n_species={self.n_species}, n_sites={self.n_sites})"

"""Manipulation functionality to deal with reference files.
"""
import os
import subprocess

from seqbatch import utils
from seqbatch.pipeline import config_utils
from seqbatch.provenance import do

def fasta_idx(in_file, samtools="samtools"):
    """Retrieve samtools style fasta index.
    """
    fasta_index = in_file + ".fai"
    if not utils.file_exists(fasta_index):
        do.run([samtools, "faidx", in_file], "samtools faidx")
    return fasta_index

def prep_reference(ref_file, samtools="samtools"):
    """Ensure a reference FASTA is present and indexed before aligning any sample.
    """
    if not ref_file or not utils.file_exists(ref_file):
        raise config_utils.BatchFatalError("Reference genome not found: %s" % ref_file)
    try:
        return fasta_idx(ref_file, samtools)
    except (subprocess.CalledProcessError, OSError) as e:
        raise config_utils.BatchFatalError("Failed to index reference %s: %s"
                                           % (os.path.basename(ref_file), e))

"""Functionality to query and index aligned BAM files.
"""
import os

import pysam

from seqbatch import utils
from seqbatch.distributed.transaction import file_transaction
from seqbatch.provenance import do

def is_bam(in_file):
    return in_file.endswith(".bam")

def index(in_bam, samtools, log_file=None):
    """Index a BAM file, skipping if index present.
    """
    assert is_bam(in_bam), "%s in not a BAM file" % in_bam
    index_file = "%s.bai" % in_bam
    if not utils.file_exists(index_file):
        utils.remove_safe(index_file)
        with file_transaction(index_file) as tx_index_file:
            do.run([samtools, "index", in_bam, tx_index_file],
                   "Index BAM file: %s" % os.path.basename(in_bam), log_file=log_file)
    return index_file

def count_mapped(in_bam):
    """Number of mapped reads from the BAM index statistics.
    """
    with pysam.AlignmentFile(in_bam, "rb") as work_bam:
        return work_bam.mapped

"""Utilities for working with fastq files.
"""
import gzip
import shutil

import pysam

from seqbatch.distributed.transaction import file_transaction

def count_reads(in_file):
    """Count records in a (possibly gzipped) fastq file.
    """
    count = 0
    with pysam.FastxFile(in_file) as in_handle:
        for _ in in_handle:
            count += 1
    return count

def gzip_to(in_file, out_file, config=None):
    """Compress an uncompressed fastq into its final location.
    """
    with file_transaction(config, out_file) as tx_out_file:
        with open(in_file, "rb") as in_handle:
            with gzip.open(tx_out_file, "wb") as out_handle:
                shutil.copyfileobj(in_handle, out_handle)
    return out_file

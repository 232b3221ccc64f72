"""Discover samples from input directories using file naming conventions.

Samples are never persisted: every stage re-derives them from the files
present in its input directory.
"""
import collections
import glob
import os

from seqbatch.log import logger

FASTQ_EXTS = (".fastq.gz", ".fq.gz", ".fastq", ".fq")

Sample = collections.namedtuple("Sample", ["name", "in_file", "pair_file"])

def find_paired_fastq(in_dir, fwd_token="_R1", rev_token="_R2", exts=FASTQ_EXTS):
    """Find forward reads containing a read token and pair them with their mates.

    S1_R1_001.fastq.gz -> Sample("S1", S1_R1_001.fastq.gz, S1_R2_001.fastq.gz)

    The mate path is derived by replacing the last forward token in the file
    name with the reverse token. Mates are not required to exist here; a
    missing mate is reported when the sample is processed.
    """
    out = []
    for fq1 in sorted(glob.glob(os.path.join(in_dir, "*%s*" % fwd_token))):
        base = os.path.basename(fq1)
        if not base.endswith(tuple(exts)) or not os.path.isfile(fq1):
            continue
        i = base.rfind(fwd_token)
        name = base[:i]
        if not name:
            logger.warning("Could not derive a sample name from %s, ignoring" % fq1)
            continue
        fq2 = os.path.join(os.path.dirname(fq1), base[:i] + rev_token + base[i + len(fwd_token):])
        out.append(Sample(name, fq1, fq2))
    return _check_unique(out)

def find_by_suffix(in_dir, suffix, pair_suffix=None):
    """Find samples by a fixed file suffix, optionally pairing by suffix substitution.

    find_by_suffix(d, "_1.nonhost.fastq.gz", "_2.nonhost.fastq.gz")
    find_by_suffix(d, ".sorted.bam")
    """
    out = []
    for in_file in sorted(glob.glob(os.path.join(in_dir, "*%s" % suffix))):
        base = os.path.basename(in_file)
        name = base[:-len(suffix)]
        if not name or not os.path.isfile(in_file):
            continue
        pair_file = (os.path.join(os.path.dirname(in_file), name + pair_suffix)
                     if pair_suffix else None)
        out.append(Sample(name, in_file, pair_file))
    return _check_unique(out)

def _check_unique(samples):
    """Keep the first file for any sample name found more than once.
    """
    seen = set()
    out = []
    for s in samples:
        if s.name in seen:
            logger.warning("Multiple input files found for sample %s, ignoring %s"
                           % (s.name, s.in_file))
            continue
        seen.add(s.name)
        out.append(s)
    return out

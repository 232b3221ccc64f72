"""Depth and breadth of coverage statistics from samtools depth output.

Depth is read from `samtools depth -a`, one line per reference position
with zero depth positions included. Breadth and ambiguous base fractions
are reported relative to the sample consensus length.
"""
import collections
import math
import os

import numpy
from Bio import SeqIO

from seqbatch import utils
from seqbatch.distributed.transaction import file_transaction
from seqbatch.log import logger
from seqbatch.pipeline import config_utils, executor, sample
from seqbatch.provenance import do

DEPTH_THRESHOLDS = [1, 10, 20, 30, 50]

DepthStats = collections.namedtuple("DepthStats", ["count", "mean", "median", "min", "max", "stddev",
                                                   "covered"])
CoverageSummary = collections.namedtuple("CoverageSummary",
                                         ["sample", "mean", "median", "min", "max", "stddev",
                                          "breadth", "n_count", "genome_length", "percent_n"])

SUMMARY_HEADER = (["Sample", "MeanDepth", "MedianDepth", "MinDepth", "MaxDepth", "StdDevDepth"] +
                  ["Coverage%sx" % t for t in DEPTH_THRESHOLDS] +
                  ["N_count", "Genome_length", "Percent_N"])

def read_depths(depth_file):
    """Iterate over per-position depths from a samtools depth file.
    """
    with open(depth_file) as in_handle:
        for line in in_handle:
            parts = line.rstrip("\r\n").split("\t")
            if len(parts) >= 3 and parts[2]:
                yield int(parts[2])

def depth_stats(depths, thresholds=DEPTH_THRESHOLDS):
    """Summarize depths in a single pass.

    Standard deviation is the sample (n - 1) estimate and is 0 with fewer
    than two positions. All values are 0 for an empty stream.
    """
    total = 0
    total_sq = 0
    count = 0
    min_depth = None
    max_depth = 0
    covered = collections.OrderedDict((t, 0) for t in thresholds)
    values = []
    for d in depths:
        total += d
        total_sq += d * d
        count += 1
        if min_depth is None or d < min_depth:
            min_depth = d
        if d > max_depth:
            max_depth = d
        for t in thresholds:
            if d >= t:
                covered[t] += 1
        values.append(d)
    mean = float(total) / count if count > 0 else 0.0
    if count > 1:
        stddev = math.sqrt(max(0.0, (total_sq - float(total) * total / count) / (count - 1)))
    else:
        stddev = 0.0
    median = float(numpy.median(numpy.array(values))) if values else 0.0
    return DepthStats(count, mean, median, min_depth or 0, max_depth, stddev, covered)

def consensus_composition(fasta_file):
    """Genome length and ambiguous base count of a consensus FASTA.

    Length ignores alignment gaps and whitespace; N is counted case-insensitively.
    """
    genome_length = 0
    n_count = 0
    with open(fasta_file) as in_handle:
        for rec in SeqIO.parse(in_handle, "fasta"):
            seq = "".join(str(rec.seq).split()).replace("-", "").upper()
            genome_length += len(seq)
            n_count += seq.count("N")
    return genome_length, n_count

def summarize(sample_name, depth_file, consensus_file):
    """Combine depth statistics and consensus composition into a CoverageSummary.
    """
    stats = depth_stats(read_depths(depth_file))
    genome_length, n_count = consensus_composition(consensus_file)
    if stats.count != genome_length:
        logger.warning("%s: depth file has %s positions but consensus length is %s. "
                       "Breadth is reported relative to the consensus length."
                       % (sample_name, stats.count, genome_length))
    breadth = collections.OrderedDict((t, utils.percent(c, genome_length))
                                      for t, c in stats.covered.items())
    return CoverageSummary(sample_name, stats.mean, stats.median, stats.min, stats.max,
                           stats.stddev, breadth, n_count, genome_length,
                           utils.percent(n_count, genome_length))

def summary_row(cov):
    return ([cov.sample, "%.2f" % cov.mean, "%.2f" % cov.median, cov.min, cov.max,
             "%.2f" % cov.stddev] +
            ["%.2f" % cov.breadth[t] for t in DEPTH_THRESHOLDS] +
            [cov.n_count, cov.genome_length, "%.2f" % cov.percent_n])

class CoverageStage(executor.Stage):
    """Per-position depth with samtools and coverage summaries per sample.

    A sample is complete only when both its depth file and its summary row
    exist.
    """
    name = "coverage"
    required_programs = ["samtools"]
    summary_name = "depth_summary.tsv"
    summary_header = SUMMARY_HEADER

    def out_dir(self):
        return config_utils.get_results_dir(self.config, "07_coverage")

    def samples(self):
        return sample.find_by_suffix(config_utils.get_results_dir(self.config, "04_mapped_bam"),
                                     ".sorted.bam")

    def consensus_file(self, s):
        return os.path.join(config_utils.get_results_dir(self.config, "06_consensus"), "%s.fa" % s.name)

    def output_files(self, s):
        return [os.path.join(self.out_dir(), "%s.depth" % s.name)]

    def is_complete(self, s):
        return (super(CoverageStage, self).is_complete(s) and
                self.summary.has_sample(s.name))

    def check_inputs(self, s):
        super(CoverageStage, self).check_inputs(s)
        if not os.path.exists(self.consensus_file(s)):
            raise executor.MissingInputError("Consensus FASTA not found for %s: %s"
                                             % (s.name, self.consensus_file(s)))

    def run(self, s, log_file):
        depth_file = self.output_files(s)[0]
        if not utils.file_exists(depth_file):
            with file_transaction(self.config, depth_file) as tx_depth_file:
                do.run([self.programs["samtools"], "depth", "-a", "-@", self.cores("samtools"),
                        s.in_file],
                       "samtools depth: %s" % s.name, log_file=log_file, stdout_file=tx_depth_file,
                       checks=[do.file_nonempty(tx_depth_file)])
        cov = summarize(s.name, depth_file, self.consensus_file(s))
        logger.info("%s: mean %.2fx, >=1x %.2f%%, >=30x %.2f%%, N count %s, percent N %.2f%%"
                    % (s.name, cov.mean, cov.breadth[1], cov.breadth[30], cov.n_count, cov.percent_n))
        return summary_row(cov)

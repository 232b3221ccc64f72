"""Variant calling and consensus generation from pileups with iVar.

https://andersen-lab.github.io/ivar/html/
"""
import csv
import os

from Bio import SeqIO

from seqbatch import utils
from seqbatch.distributed.transaction import file_transaction, tx_tmpdir
from seqbatch.pipeline import config_utils, executor, sample
from seqbatch.provenance import do
from seqbatch.qc import coverage


def _bam_samples(config):
    return sample.find_by_suffix(config_utils.get_results_dir(config, "04_mapped_bam"), ".sorted.bam")

class VariantStage(executor.Stage):
    name = "variants"
    required_programs = ["samtools", "ivar"]
    summary_name = "variant_summary.tsv"
    summary_header = ["Sample", "Variants", "Passing_Variants"]

    def out_dir(self):
        return config_utils.get_results_dir(self.config, "05_variants")

    def samples(self):
        return _bam_samples(self.config)

    def ref_file(self):
        return config_utils.get_path(self.config, ["reference", "viral"])

    def check_shared_inputs(self):
        if not utils.file_exists(self.ref_file()):
            raise config_utils.BatchFatalError("Reference genome not found: %s" % self.ref_file())

    def output_files(self, s):
        return [os.path.join(self.out_dir(), "%s_variants.tsv" % s.name)]

    def run(self, s, log_file):
        params = self.algorithm()
        ref_file = self.ref_file()
        out_file = self.output_files(s)[0]
        with file_transaction(self.config, out_file) as tx_out_file:
            prefix = os.path.splitext(tx_out_file)[0]
            mpileup = [self.programs["samtools"], "mpileup", "-A",
                       "-d", params.get("max_depth", 1000000), "-B", "-Q", 0,
                       "-f", ref_file, s.in_file]
            ivar = [self.programs["ivar"], "variants", "-r", ref_file, "-p", prefix]
            ivar += config_utils.get_options("ivar", self.config)
            do.run_pipe([mpileup, ivar], "Variant calling with iVar: %s" % s.name,
                        log_file=log_file, checks=[do.file_exists(tx_out_file)])
        total, passing = count_variants(out_file)
        return [s.name, total, passing]

def count_variants(variant_file):
    """Total and PASS variant counts from an iVar variants table.
    """
    total = 0
    passing = 0
    with open(variant_file) as in_handle:
        reader = csv.DictReader(in_handle, dialect="excel-tab")
        for row in reader:
            total += 1
            if (row.get("PASS") or "").upper() == "TRUE":
                passing += 1
    return total, passing

class ConsensusStage(executor.Stage):
    """Majority consensus from the reads alone, with a renamed FASTA header.

    The header is built from the `algorithm.consensus.header` template, which
    may reference `{sample}`.
    """
    name = "consensus"
    required_programs = ["samtools", "ivar"]
    summary_name = "consensus_summary.tsv"
    summary_header = ["Sample", "Length", "N_count", "Percent_N"]

    def out_dir(self):
        return config_utils.get_results_dir(self.config, "06_consensus")

    def samples(self):
        return _bam_samples(self.config)

    def output_files(self, s):
        return [os.path.join(self.out_dir(), "%s.fa" % s.name)]

    def run(self, s, log_file):
        params = self.algorithm()
        out_file = self.output_files(s)[0]
        with tx_tmpdir(self.config) as tmp_dir:
            prefix = os.path.join(tmp_dir, s.name)
            mpileup = [self.programs["samtools"], "mpileup", "-A", "-Q", 0, s.in_file]
            ivar = [self.programs["ivar"], "consensus", "-p", prefix,
                    "-q", params.get("min_qual", 20),
                    "-t", params.get("freq_threshold", 0.7),
                    "-m", params.get("min_depth", 1)]
            ivar += config_utils.get_options("ivar", self.config)
            do.run_pipe([mpileup, ivar], "Consensus with iVar: %s" % s.name,
                        log_file=log_file, checks=[do.file_nonempty(prefix + ".fa")])
            with file_transaction(self.config, out_file) as tx_out_file:
                rename_header(prefix + ".fa", tx_out_file,
                              params.get("header", "{sample}").format(sample=s.name))
        length, n_count = coverage.consensus_composition(out_file)
        return [s.name, length, n_count, "%.2f" % utils.percent(n_count, length)]

def rename_header(in_file, out_file, header):
    """Write consensus records with a new header; extra records get a numeric suffix.
    """
    with open(in_file) as in_handle:
        recs = list(SeqIO.parse(in_handle, "fasta"))
    for i, rec in enumerate(recs):
        rec.id = header if i == 0 else "%s_%s" % (header, i + 1)
        rec.description = ""
    with open(out_file, "w") as out_handle:
        SeqIO.write(recs, out_handle, "fasta")
    return out_file

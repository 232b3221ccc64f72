"""Multiple sequence alignment of consensus genomes with a reference panel.

Consensus sequences, panel genomes and the outgroup are combined with
sanitized single token headers, aligned with MAFFT and trimmed of poorly
aligned regions with trimAl. Intermediate files never reach the output
directory.
"""
import glob
import os

from Bio import SeqIO

from seqbatch import utils
from seqbatch.distributed.transaction import file_transaction, tx_tmpdir
from seqbatch.pipeline import config_utils, executor
from seqbatch.provenance import do

MSA_FILE = "all_sequences_aligned_trimmed.fasta"

def combine_fastas(in_files, out_file):
    """Concatenate FASTA records replacing spaces in headers with underscores.
    """
    count = 0
    with open(out_file, "w") as out_handle:
        for in_file in in_files:
            with open(in_file) as in_handle:
                for rec in SeqIO.parse(in_handle, "fasta"):
                    rec.id = rec.description.replace(" ", "_")
                    rec.description = ""
                    SeqIO.write(rec, out_handle, "fasta")
                    count += 1
    return count

def mafft_options(thorough=False):
    if thorough:
        return ["--globalpair", "--maxiterate", 1000]
    else:
        return ["--retree", 2, "--maxiterate", 2]

class MsaStage(executor.CohortStage):
    name = "msa"
    required_programs = ["mafft", "trimal"]

    def out_dir(self):
        return config_utils.get_results_dir(self.config, "09_msa")

    def panel_files(self):
        panel_dir = config_utils.get_path(self.config, ["reference", "panel"])
        return sorted(glob.glob(os.path.join(panel_dir, "*.fasta")))

    def outgroup(self):
        return config_utils.get_path(self.config, ["reference", "outgroup"])

    def consensus_files(self):
        cons_dir = config_utils.get_results_dir(self.config, "06_consensus")
        return sorted(glob.glob(os.path.join(cons_dir, "*.fa")))

    def check_shared_inputs(self):
        if not self.panel_files():
            raise config_utils.BatchFatalError(
                "No reference FASTAs found in %s" % config_utils.get_path(self.config, ["reference", "panel"]))
        if not utils.file_exists(self.outgroup()):
            raise config_utils.BatchFatalError("Outgroup file not found at %s" % self.outgroup())

    def input_files(self):
        return self.consensus_files()

    def output_files(self, s):
        return [os.path.join(self.out_dir(), MSA_FILE)]

    def run(self, s, log_file):
        out_file = self.output_files(s)[0]
        with tx_tmpdir(self.config) as tmp_dir:
            combined = os.path.join(tmp_dir, "all_sequences_input.fasta")
            raw_aln = os.path.join(tmp_dir, "all_sequences_raw_aligned.fasta")
            in_files = self.consensus_files() + self.panel_files() + [self.outgroup()]
            combine_fastas(in_files, combined)
            cmd = ([self.programs["mafft"]] + mafft_options(self.algorithm().get("thorough", False)) +
                   ["--adjustdirection", "--thread", self.cores("mafft")] +
                   config_utils.get_options("mafft", self.config) + [combined])
            do.run(cmd, "MAFFT alignment of %s sequence files" % len(in_files), log_file=log_file,
                   stdout_file=raw_aln, checks=[do.file_nonempty(raw_aln)])
            with file_transaction(self.config, out_file) as tx_out_file:
                do.run([self.programs["trimal"], "-in", raw_aln, "-out", tx_out_file, "-automated1"],
                       "Trim alignment with trimAl", log_file=log_file,
                       checks=[do.file_nonempty(tx_out_file)])
        return None

"""Select complete genomes from downloaded sequences for the comparison panel.

Downloaded FASTA files at least `algorithm.references.min_length` bases
long are copied into the reference panel directory. Every genome is listed
in `selection_summary.tsv`, longest first.
"""
import csv
import glob
import os
import shutil

from Bio import SeqIO

from seqbatch import utils
from seqbatch.distributed.transaction import file_transaction
from seqbatch.log import logger
from seqbatch.pipeline import config_utils, executor

SELECTION_HEADER = ["Genome", "Length(bp)", "Included"]

def sequence_length(fasta_file):
    """Total sequence length of all records, ignoring headers and whitespace.
    """
    with open(fasta_file) as in_handle:
        return sum(len("".join(str(rec.seq).split())) for rec in SeqIO.parse(in_handle, "fasta"))

def select_genomes(fasta_files, min_length):
    """Lengths and inclusion status for each file, sorted by length descending.
    """
    out = []
    for fasta_file in fasta_files:
        length = sequence_length(fasta_file)
        out.append((fasta_file, length, length >= min_length))
    return sorted(out, key=lambda x: x[1], reverse=True)

class ReferenceSelectionStage(executor.CohortStage):
    name = "references"
    required_programs = []

    def out_dir(self):
        return config_utils.get_path(self.config, ["reference", "panel"])

    def download_dir(self):
        return config_utils.get_path(self.config, ["reference", "downloads"])

    def check_shared_inputs(self):
        if not self.download_dir() or not os.path.isdir(self.download_dir()):
            raise config_utils.BatchFatalError("Downloaded genome directory not found: %s"
                                               % self.download_dir())

    def input_files(self):
        return sorted(glob.glob(os.path.join(self.download_dir(), "*.fasta")))

    def output_files(self, s):
        return [os.path.join(self.out_dir(), "selection_summary.tsv")]

    def run(self, s, log_file):
        min_length = int(self.algorithm().get("min_length", 18000))
        selected = select_genomes(self.input_files(), min_length)
        utils.safe_makedir(self.out_dir())
        for fasta_file, length, included in selected:
            if included:
                shutil.copy(fasta_file, os.path.join(self.out_dir(), os.path.basename(fasta_file)))
            else:
                logger.info("Excluding %s: %s bp is below the %s bp minimum"
                            % (os.path.basename(fasta_file), length, min_length))
        out_file = self.output_files(s)[0]
        with file_transaction(self.config, out_file) as tx_out_file:
            with open(tx_out_file, "w") as out_handle:
                writer = csv.writer(out_handle, dialect="excel-tab", lineterminator="\n")
                writer.writerow(SELECTION_HEADER)
                for fasta_file, length, included in selected:
                    writer.writerow([os.path.basename(fasta_file), length, "YES" if included else "NO"])
        logger.info("Selected %s of %s genomes for %s"
                    % (len([x for x in selected if x[2]]), len(selected), self.out_dir()))
        return None

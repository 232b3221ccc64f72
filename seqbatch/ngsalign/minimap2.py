"""Alignment of non-host reads to the viral reference with minimap2.

https://github.com/lh3/minimap2
"""
import os

from seqbatch import bam, utils
from seqbatch.bam import fastq, ref
from seqbatch.distributed.transaction import file_transaction
from seqbatch.pipeline import config_utils, executor, sample
from seqbatch.provenance import do


class MappingStage(executor.Stage):
    """Piped minimap2 alignment and samtools sort, producing indexed BAMs.

    A sample is complete once its BAM index exists, since indexing is the
    final step.
    """
    name = "mapping"
    required_programs = ["minimap2", "samtools"]
    summary_name = "mapping_summary.tsv"
    summary_header = ["Sample", "Input_Reads", "Mapped_Reads", "Mapping_Rate"]

    def out_dir(self):
        return config_utils.get_results_dir(self.config, "04_mapped_bam")

    def samples(self):
        return sample.find_by_suffix(config_utils.get_results_dir(self.config, "03_nonhuman_reads"),
                                     "_1.nonhost.fastq.gz", "_2.nonhost.fastq.gz")

    def check_shared_inputs(self):
        ref_file = config_utils.get_path(self.config, ["reference", "viral"])
        ref.prep_reference(ref_file, self.programs["samtools"])

    def bam_file(self, s):
        return os.path.join(self.out_dir(), "%s.sorted.bam" % s.name)

    def output_files(self, s):
        return [self.bam_file(s) + ".bai"]

    def cleanup_files(self, s):
        return [self.bam_file(s)]

    def check_inputs(self, s):
        super(MappingStage, self).check_inputs(s)
        try:
            num_reads = fastq.count_reads(s.in_file)
        except ValueError as e:
            raise executor.MissingInputError("Non-host file %s is not readable FASTQ: %s"
                                             % (s.in_file, e))
        if num_reads < 1:
            raise executor.MissingInputError("Non-host file %s contains no reads" % s.in_file)

    def run(self, s, log_file):
        ref_file = config_utils.get_path(self.config, ["reference", "viral"])
        out_file = self.bam_file(s)
        cores = self.cores("minimap2")
        read_count = fastq.count_reads(s.in_file) + fastq.count_reads(s.pair_file)
        with file_transaction(self.config, out_file) as tx_out_file:
            minimap2 = [self.programs["minimap2"], "-ax", "sr", "-t", cores, ref_file,
                        s.in_file, s.pair_file]
            minimap2 += config_utils.get_options("minimap2", self.config)
            sort = [self.programs["samtools"], "sort", "-@", cores, "-o", tx_out_file, "-"]
            do.run_pipe([minimap2, sort], "minimap2 alignment: %s" % s.name, log_file=log_file,
                        checks=[do.file_nonempty(tx_out_file)])
        bam.index(out_file, self.programs["samtools"], log_file)
        mapped = bam.count_mapped(out_file)
        return [s.name, read_count, mapped, "%.2f" % utils.percent(mapped, read_count)]

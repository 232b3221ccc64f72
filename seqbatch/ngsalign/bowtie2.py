"""Host read depletion with Bowtie2.

http://bowtie-bio.sourceforge.net/bowtie2/index.shtml

Reads are aligned to the host genome; pairs that fail to align concordantly
are written by bowtie2 (--un-conc) and kept as the non-host reads.
"""
import os

from seqbatch import utils
from seqbatch.bam import fastq
from seqbatch.distributed.transaction import file_transaction, tx_tmpdir
from seqbatch.pipeline import config_utils, executor, sample
from seqbatch.provenance import do


class HostRemovalStage(executor.Stage):
    name = "host"
    required_programs = ["bowtie2", "samtools"]
    summary_name = "host_removal_summary.tsv"
    summary_header = ["Sample", "Input_Pairs", "NonHost_Pairs", "Percent_NonHost"]

    def out_dir(self):
        return config_utils.get_results_dir(self.config, "03_nonhuman_reads")

    def samples(self):
        return sample.find_by_suffix(config_utils.get_results_dir(self.config, "02_clean_reads"),
                                     "_R1.trimmed.fastq.gz", "_R2.trimmed.fastq.gz")

    def index_prefix(self):
        return config_utils.get_path(self.config, ["reference", "host_index"])

    def check_shared_inputs(self):
        index_prefix = self.index_prefix()
        if not index_prefix or not os.path.exists(index_prefix + ".1.bt2"):
            raise config_utils.BatchFatalError(
                "Bowtie2 index files not found at %s.*.bt2. Build the host index first."
                % index_prefix)

    def output_files(self, s):
        return [os.path.join(self.out_dir(), "%s_1.nonhost.fastq.gz" % s.name),
                os.path.join(self.out_dir(), "%s_2.nonhost.fastq.gz" % s.name)]

    def stats_dir(self, s):
        return os.path.join(self.out_dir(), "alignment_stats", s.name)

    def cleanup_files(self, s):
        stats_dir = self.stats_dir(s)
        return self.output_files(s) + [os.path.join(stats_dir, "%s.bam" % s.name),
                                       os.path.join(stats_dir, "%s.flagstat" % s.name)]

    def run(self, s, log_file):
        out1, out2 = self.output_files(s)
        stats_dir = utils.safe_makedir(self.stats_dir(s))
        bam_file = os.path.join(stats_dir, "%s.bam" % s.name)
        flagstat_file = os.path.join(stats_dir, "%s.flagstat" % s.name)
        cores = self.cores("bowtie2")
        with tx_tmpdir(self.config) as tmp_dir:
            unmapped_prefix = os.path.join(tmp_dir, "%s_unmapped" % s.name)
            with file_transaction(self.config, bam_file) as tx_bam_file:
                bowtie2 = [self.programs["bowtie2"], "--very-sensitive-local",
                           "--score-min", "L,0,-0.6", "--ma", 0,
                           "-x", self.index_prefix(), "-1", s.in_file, "-2", s.pair_file,
                           "-p", cores, "--un-conc", unmapped_prefix, "-S", "-"]
                bowtie2 += config_utils.get_options("bowtie2", self.config)
                samtools = [self.programs["samtools"], "view", "-@", cores, "-bS", "-"]
                do.run_pipe([bowtie2, samtools], "Host depletion with bowtie2: %s" % s.name,
                            log_file=log_file, stdout_file=tx_bam_file,
                            checks=[do.file_exists(unmapped_prefix + ".1"),
                                    do.file_exists(unmapped_prefix + ".2")])
            fastq.gzip_to(unmapped_prefix + ".1", out1, self.config)
            fastq.gzip_to(unmapped_prefix + ".2", out2, self.config)
        with file_transaction(self.config, flagstat_file) as tx_flagstat:
            do.run([self.programs["samtools"], "flagstat", "-@", cores, bam_file],
                   "samtools flagstat: %s" % s.name, log_file=log_file, stdout_file=tx_flagstat)
        input_pairs = fastq.count_reads(s.in_file)
        nonhost_pairs = fastq.count_reads(out1)
        return [s.name, input_pairs, nonhost_pairs, "%.2f" % utils.percent(nonhost_pairs, input_pairs)]

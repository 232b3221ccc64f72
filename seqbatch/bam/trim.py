"""Quality and adapter trimming of paired reads with fastp.

https://github.com/OpenGene/fastp
"""
import json
import os

from seqbatch import utils
from seqbatch.distributed.transaction import file_transaction
from seqbatch.pipeline import config_utils, executor, sample
from seqbatch.provenance import do


class TrimStage(executor.Stage):
    """Trim raw paired reads, writing clean reads and fastp QC reports.
    """
    name = "trim"
    required_programs = ["fastp"]
    summary_name = "trimming_summary.tsv"
    summary_header = ["Sample", "Reads_Before", "Reads_After", "Percent_Retained"]

    def out_dir(self):
        return config_utils.get_results_dir(self.config, "01_fastp")

    def clean_dir(self):
        return config_utils.get_results_dir(self.config, "02_clean_reads")

    def samples(self):
        return sample.find_paired_fastq(config_utils.get_path(self.config, ["dirs", "raw"]))

    def output_files(self, s):
        return [os.path.join(self.clean_dir(), "%s_R1.trimmed.fastq.gz" % s.name),
                os.path.join(self.clean_dir(), "%s_R2.trimmed.fastq.gz" % s.name)]

    def report_files(self, s):
        return [os.path.join(self.out_dir(), "%s_fastp.html" % s.name),
                os.path.join(self.out_dir(), "%s_fastp.json" % s.name)]

    def cleanup_files(self, s):
        return self.output_files(s) + self.report_files(s)

    def run(self, s, log_file):
        params = self.algorithm()
        out_files = self.output_files(s)
        report_files = self.report_files(s)
        with file_transaction(self.config, out_files + report_files) as tx_files:
            tx_out1, tx_out2, tx_html, tx_json = tx_files
            cmd = [self.programs["fastp"], "-i", s.in_file, "-I", s.pair_file,
                   "-o", tx_out1, "-O", tx_out2, "-h", tx_html, "-j", tx_json,
                   "--report_title", "fastp QC %s" % s.name,
                   "--thread", self.cores("fastp"),
                   "--detect_adapter_for_pe",
                   "--length_required", params.get("min_len", 50),
                   "--qualified_quality_phred", params.get("min_qual", 20),
                   "--trim_poly_g", "--trim_poly_x", "--low_complexity_filter",
                   "--cut_window_size", 4, "--cut_mean_quality", 20,
                   "--trim_front1", 0, "--trim_front2", 0]
            cmd += config_utils.get_options("fastp", self.config)
            do.run(cmd, "Trimming with fastp: %s" % s.name, log_file=log_file,
                   checks=[do.file_nonempty(tx_out1), do.file_nonempty(tx_out2)])
        before, after = read_counts(report_files[1])
        return [s.name, before, after, "%.2f" % utils.percent(after, before)]

def read_counts(json_file):
    """Total reads before and after filtering from a fastp JSON report.
    """
    with open(json_file) as in_handle:
        report = json.load(in_handle)
    summary = report.get("summary", {})
    before = summary.get("before_filtering", {}).get("total_reads", 0)
    after = summary.get("after_filtering", {}).get("total_reads", 0)
    return before, after

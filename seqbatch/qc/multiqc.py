"""High level summaries of trimming QC with MultiQC.

https://multiqc.info/
"""
import glob
import os
import shutil

from seqbatch import utils
from seqbatch.distributed.transaction import tx_tmpdir
from seqbatch.pipeline import config_utils, executor
from seqbatch.provenance import do


class MultiqcStage(executor.CohortStage):
    name = "multiqc"
    required_programs = ["multiqc"]

    def out_dir(self):
        return config_utils.get_results_dir(self.config, "08_multiqc")

    def qc_dir(self):
        return config_utils.get_results_dir(self.config, "01_fastp")

    def input_files(self):
        return sorted(glob.glob(os.path.join(self.qc_dir(), "*_fastp.json")))

    def output_files(self, s):
        return [os.path.join(self.out_dir(), "multiqc_report.html")]

    def cleanup_files(self, s):
        return self.output_files(s) + [os.path.join(self.out_dir(), "multiqc_data")]

    def run(self, s, log_file):
        out_file = self.output_files(s)[0]
        out_data = os.path.join(self.out_dir(), "multiqc_data")
        utils.safe_makedir(self.out_dir())
        with tx_tmpdir(self.config) as tx_out:
            cmd = [self.programs["multiqc"], "-f", self.qc_dir(), "-o", tx_out]
            cmd += config_utils.get_options("multiqc", self.config)
            do.run(cmd, "Run multiqc", log_file=log_file,
                   checks=[do.file_nonempty(os.path.join(tx_out, "multiqc_report.html"))])
            if os.path.exists(os.path.join(tx_out, "multiqc_data")):
                utils.remove_safe(out_data)
                shutil.move(os.path.join(tx_out, "multiqc_data"), out_data)
            shutil.move(os.path.join(tx_out, "multiqc_report.html"), out_file)
        return None

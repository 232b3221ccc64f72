"""Clade assignment of consensus genomes with Nextclade.

https://docs.nextstrain.org/projects/nextclade/

The dataset is either a local dataset directory or a dataset name fetched
by nextclade itself.
"""
import glob
import os

from seqbatch.distributed.transaction import file_transaction
from seqbatch.pipeline import config_utils, executor
from seqbatch.provenance import do


def is_configured(config):
    return bool(config.get("reference", {}).get("nextclade_dataset"))

class CladeStage(executor.CohortStage):
    name = "clades"
    required_programs = ["nextclade"]

    def out_dir(self):
        return config_utils.get_results_dir(self.config, "11_clades")

    def dataset(self):
        return self.config.get("reference", {}).get("nextclade_dataset")

    def check_shared_inputs(self):
        if not self.dataset():
            raise config_utils.BatchFatalError("Clade assignment needs reference: nextclade_dataset "
                                               "in the configuration")

    def input_files(self):
        cons_dir = config_utils.get_results_dir(self.config, "06_consensus")
        return sorted(glob.glob(os.path.join(cons_dir, "*.fa")))

    def output_files(self, s):
        return [os.path.join(self.out_dir(), "clades.tsv")]

    def dataset_args(self):
        dataset = self.dataset()
        local = config_utils.get_path(self.config, ["reference", "nextclade_dataset"])
        if os.path.exists(local):
            return ["--input-dataset", local]
        else:
            return ["--dataset-name", dataset]

    def run(self, s, log_file):
        out_file = self.output_files(s)[0]
        with file_transaction(self.config, out_file) as tx_out_file:
            cmd = ([self.programs["nextclade"], "run"] + self.dataset_args() +
                   ["--jobs", self.cores("nextclade"), "--output-tsv", tx_out_file])
            cmd += config_utils.get_options("nextclade", self.config)
            cmd += self.input_files()
            do.run(cmd, "Clade assignment with nextclade", log_file=log_file,
                   checks=[do.file_nonempty(tx_out_file)])
        return None

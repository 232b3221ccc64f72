"""Maximum likelihood phylogeny from the trimmed alignment with IQ-TREE.

http://www.iqtree.org/

ModelFinder selects the substitution model and ultrafast bootstrap
supports the branches. The tree and run log stay in the output directory;
all other IQ-TREE outputs go to `intermediates/`.
"""
import glob
import os
import shutil
import time

from seqbatch import utils
from seqbatch.distributed.transaction import file_transaction
from seqbatch.log import logger
from seqbatch.phylogeny import msa
from seqbatch.pipeline import config_utils, executor
from seqbatch.provenance import do


def best_model(log_file):
    """Best-fit model reported in an IQ-TREE log, or N/A when not found.
    """
    if not utils.file_exists(log_file):
        return "N/A"
    with open(log_file) as in_handle:
        for line in in_handle:
            if line.startswith(("Best-fit model:", "ModelFinder best model:")):
                parts = line.split(":", 1)[1].split()
                if parts:
                    return parts[0]
    return "N/A"

class PhylogenyStage(executor.CohortStage):
    name = "phylogeny"
    required_programs = ["iqtree"]
    summary_name = "iqtree_summary.tsv"
    summary_header = ["Treefile", "Runtime_seconds", "Best_Model"]

    def out_dir(self):
        return config_utils.get_results_dir(self.config, "10_phylogeny")

    def prefix(self):
        return self.algorithm().get("prefix", "marv_phylogeny")

    def input_files(self):
        return [os.path.join(config_utils.get_results_dir(self.config, "09_msa"), msa.MSA_FILE)]

    def output_files(self, s):
        return [os.path.join(self.out_dir(), "%s.treefile" % self.prefix())]

    def run(self, s, log_file):
        params = self.algorithm()
        tree_file = self.output_files(s)[0]
        inter_dir = utils.safe_makedir(os.path.join(self.out_dir(), "intermediates"))
        iq_log = os.path.join(self.out_dir(), "%s.log" % self.prefix())
        start = time.time()
        with file_transaction(self.config, tree_file) as tx_tree_file:
            tx_prefix = os.path.join(os.path.dirname(tx_tree_file), self.prefix())
            cmd = [self.programs["iqtree"], "-s", self.input_files()[0],
                   "-m", params.get("model", "MFP"), "-bb", params.get("bootstrap", 1000),
                   "-nt", self.cores("iqtree"), "--prefix", tx_prefix]
            cmd += config_utils.get_options("iqtree", self.config)
            do.run(cmd, "Phylogeny with IQ-TREE", log_file=log_file,
                   checks=[do.file_nonempty(tx_tree_file)])
            for fname in glob.glob(tx_prefix + ".*"):
                if fname == tx_tree_file:
                    continue
                elif fname == tx_prefix + ".log":
                    shutil.move(fname, iq_log)
                else:
                    dest = os.path.join(inter_dir, os.path.basename(fname))
                    utils.remove_safe(dest)
                    shutil.move(fname, dest)
        runtime = int(time.time() - start)
        model = best_model(iq_log)
        logger.info("IQ-TREE finished in %s seconds, best model %s: %s" % (runtime, model, tree_file))
        return [os.path.relpath(tree_file, self.config["dirs"]["project"]), runtime, model]

"""Main entry point for running batch analysis stages.

Stages run in the requested order. Each stage processes every sample it
discovers, isolating per-sample failures; only batch fatal problems
(missing programs or shared reference inputs) stop the run and produce a
non-zero exit code.
"""
import argparse
import os
import sys

from seqbatch import log, utils
from seqbatch.distributed import resources
from seqbatch.log import logger
from seqbatch.pipeline import config_utils, executor, stages, version


def run_main(workdir, config_file=None, stage_names=None, numcores=None):
    """Run the requested stages, returning RunCounters for each completed stage.
    """
    workdir = utils.safe_makedir(os.path.abspath(workdir))
    os.chdir(workdir)
    config = config_utils.load_config(config_file)
    if numcores:
        config["algorithm"]["num_cores"] = numcores
    handler = log.setup_local_logging(config)
    try:
        if config_file:
            logger.info("YAML configuration: %s" % os.path.abspath(config_file))
        logger.info("Project directory: %s" % config["dirs"]["project"])
        logger.info("Thread budget: %s cores" % resources.thread_budget(
            config["algorithm"].get("num_cores"), config["algorithm"].get("reserve_cores", 2)))
        counts = []
        for name, stage_cls in stages.get_stages(stage_names or ["all"], config):
            logger.info("Running stage: %s" % name)
            try:
                counts.append(executor.run_stage(stage_cls, config))
            except config_utils.BatchFatalError as e:
                logger.error("FATAL: stage %s aborted: %s" % (name, e))
                raise
        for c in counts:
            logger.info("Summary %s" % c)
        return counts
    finally:
        handler.pop_application()
        handler.close()

def parse_cl_args(in_args):
    """Parse input commandline arguments, returning a dictionary of run arguments.
    """
    description = "Batch analysis of paired-end viral sequencing data."
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument("config_file", nargs="?",
                        help="YAML configuration file (optional, defaults to the standard project layout)")
    parser.add_argument("-s", "--stage", dest="stages", action="append", default=[],
                        choices=["all"] + list(stages.STAGES.keys()),
                        help="Stage to run. Can be specified multiple times. Defaults to all")
    parser.add_argument("-n", "--numcores", type=int, default=None,
                        help="Total cores available, before reserving cores for the system")
    parser.add_argument("--workdir", default=os.getcwd(),
                        help="Directory to process in. Defaults to current working directory")
    parser.add_argument("-v", "--version", help="Print current version",
                        action="store_true")
    args = parser.parse_args(in_args)
    if args.version:
        print(version.__version__)
        sys.exit(0)
    config_file = os.path.abspath(args.config_file) if args.config_file else None
    if config_file and not os.path.isfile(config_file):
        parser.error("Configuration file not found: %s" % config_file)
    return {"workdir": os.path.abspath(args.workdir),
            "config_file": config_file,
            "stage_names": args.stages or ["all"],
            "numcores": args.numcores}

def main(in_args=None):
    """Command line entry point, returning the process exit code.
    """
    kwargs = parse_cl_args(sys.argv[1:] if in_args is None else in_args)
    try:
        run_main(**kwargs)
    except config_utils.BatchFatalError:
        return 1
    return 0

"""Drive a single pipeline stage across all discovered samples.

Each sample is handled independently and sequentially:

  - skipped when all expected outputs already exist and are non-empty
  - failed when inputs are missing or empty
  - failed when the external tool (or any stage of a tool pipe) exits
    non-zero or writes output that cannot be parsed, removing outputs
    already moved into place
  - processed otherwise, adding a row to the stage summary table

Sample failures never abort the batch. Missing programs or shared inputs
(`config_utils.BatchFatalError`) abort the stage before any sample is run.
"""
import os
import subprocess

from seqbatch import utils
from seqbatch.distributed import resources
from seqbatch.log import logger, get_log_dir
from seqbatch.pipeline import config_utils, summary
from seqbatch.pipeline.sample import Sample

SKIPPED_EXISTING = "skipped_existing"
SUCCEEDED = "succeeded"
FAILED_MISSING_INPUT = "failed_missing_input"
FAILED_TOOL_ERROR = "failed_tool_error"


class MissingInputError(Exception):
    """Input for a single sample is absent or empty.
    """
    pass

class RunCounters(object):
    """Outcomes of one stage invocation.
    """
    def __init__(self, stage):
        self.stage = stage
        self.processed = 0
        self.skipped = 0
        self.failed = 0
        self.outcomes = {}

    def add(self, sample_name, outcome):
        self.outcomes[sample_name] = outcome
        if outcome == SUCCEEDED:
            self.processed += 1
        elif outcome == SKIPPED_EXISTING:
            self.skipped += 1
        else:
            self.failed += 1

    @property
    def total(self):
        return self.processed + self.skipped + self.failed

    def __repr__(self):
        return ("%s: processed %s, skipped %s, failed %s"
                % (self.stage, self.processed, self.skipped, self.failed))

class Stage(object):
    """Base description of a batch stage.

    Subclasses provide sample discovery, expected outputs and the tool
    invocation. Programs listed in `required_programs` are resolved once
    and passed in as full paths.
    """
    name = None
    required_programs = []
    summary_name = None
    summary_header = None

    def __init__(self, config, programs):
        self.config = config
        self.programs = programs
        self.summary = None
        if self.summary_name:
            self.summary = summary.SummaryTable(os.path.join(self.out_dir(), self.summary_name),
                                                self.summary_header)

    def out_dir(self):
        raise NotImplementedError

    def samples(self):
        raise NotImplementedError

    def output_files(self, sample):
        raise NotImplementedError

    def run(self, sample, log_file):
        """Run the tool for a sample, returning a summary row or None.
        """
        raise NotImplementedError

    def check_shared_inputs(self):
        """Raise BatchFatalError if inputs shared by all samples are unavailable.
        """
        pass

    def is_complete(self, sample):
        return all(utils.file_exists(f) for f in self.output_files(sample))

    def check_inputs(self, sample):
        """Check sample inputs exist and are non-empty, warning about mate size mismatches.
        """
        for f in [sample.in_file, sample.pair_file]:
            if f is None:
                continue
            if not os.path.exists(f):
                raise MissingInputError("Input file not found for %s: %s" % (sample.name, f))
            if not utils.file_exists(f):
                raise MissingInputError("Input file is empty for %s: %s" % (sample.name, f))
        if sample.pair_file:
            check_pair_sizes(sample, self.config["algorithm"].get("size_ratio"))

    def cleanup_files(self, sample):
        """Files to remove when the tool fails for a sample.
        """
        return self.output_files(sample)

    def cores(self, program):
        return resources.get_cores(program, self.config)

    def algorithm(self):
        return config_utils.get_algorithm(self.name, self.config)

def check_pair_sizes(sample, ratio):
    """Warn when mate files differ in size enough to suggest a truncated transfer.
    """
    if not ratio:
        return True
    size1 = os.path.getsize(sample.in_file)
    size2 = os.path.getsize(sample.pair_file)
    if size1 < size2 * ratio or size2 < size1 * ratio:
        logger.warning("%s: forward and reverse read files differ in size (%s versus %s bytes). "
                       "Continuing, but this may indicate a truncated transfer."
                       % (sample.name, size1, size2))
        return False
    return True

def sample_log_file(config, stage_name, sample_name):
    log_dir = utils.safe_makedir(os.path.join(get_log_dir(config), stage_name))
    return os.path.join(log_dir, "%s_%s_%s.log" % (sample_name, stage_name, utils.timestamp()))

def run_stage(stage_cls, config):
    """Run a stage over all of its samples, returning the RunCounters.

    Programs and shared inputs are checked before any sample is processed;
    problems with these raise BatchFatalError.
    """
    programs = config_utils.get_programs(stage_cls.required_programs, config)
    stage = stage_cls(config, programs)
    stage.check_shared_inputs()
    counts = RunCounters(stage.name)
    samples = stage.samples()
    if not samples:
        logger.warning("%s: no input samples found" % stage.name)
    for sample in samples:
        counts.add(sample.name, process_sample(stage, sample))
    logger.info(str(counts))
    return counts

def process_sample(stage, sample):
    """Process a single sample, classifying the outcome.
    """
    if stage.is_complete(sample):
        logger.info("%s: output for %s exists, skipping" % (stage.name, sample.name))
        return SKIPPED_EXISTING
    try:
        stage.check_inputs(sample)
    except MissingInputError as e:
        logger.warning("%s: %s. Skipping sample." % (stage.name, e))
        return FAILED_MISSING_INPUT
    log_file = sample_log_file(stage.config, stage.name, sample.name)
    logger.info("%s: processing %s" % (stage.name, sample.name))
    try:
        row = stage.run(sample, log_file)
    except MissingInputError as e:
        logger.warning("%s: %s. Skipping sample." % (stage.name, e))
        return FAILED_MISSING_INPUT
    except (subprocess.CalledProcessError, OSError, ValueError) as e:
        for f in stage.cleanup_files(sample):
            utils.remove_plus(f)
        logger.error("%s: failed for %s. See log file %s" % (stage.name, sample.name, log_file))
        logger.debug(str(e))
        return FAILED_TOOL_ERROR
    if row is not None and stage.summary is not None:
        if not stage.summary.append(row):
            logger.info("%s: %s already present in %s" % (stage.name, sample.name, stage.summary.fname))
    logger.info("%s: finished %s" % (stage.name, sample.name))
    return SUCCEEDED

class CohortStage(Stage):
    """A stage combining all samples into a single output.

    Runs through the same executor as a single pseudo-sample named after
    the stage, so it is skipped, failed and counted like any other sample.
    """
    def samples(self):
        return [Sample(self.name, self.out_dir(), None)]

    def input_files(self):
        """Files the cohort run reads; none available is a missing input.
        """
        raise NotImplementedError

    def check_inputs(self, s):
        in_files = self.input_files()
        if not in_files:
            raise MissingInputError("No input files available for %s" % self.name)
        for f in in_files:
            if not utils.file_exists(f):
                raise MissingInputError("Input file is missing or empty for %s: %s" % (self.name, f))

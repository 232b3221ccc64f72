"""Loads configurations from .yaml files and expands environment variables.

User configuration is merged over `DEFAULTS`, which mirrors the standard
project layout:

  raw_reads/                 paired FASTQ input
  reference_genomes/         viral reference, host index, comparison panel
  results/NN_stage/          stage outputs and summary tables
  logs/<stage>/              per-sample tool logs
"""
import copy
import os
import sys

import toolz as tz
import yaml


class BatchFatalError(Exception):
    """A condition no sample could recover from: abort the stage before processing.
    """
    pass

class CmdNotFound(BatchFatalError):
    pass

DEFAULTS = {
    "dirs": {"project": ".",
             "raw": "raw_reads",
             "results": "results",
             "logs": "logs"},
    "reference": {"viral": "reference_genomes/Marburg_reference.fasta",
                  "host_index": "reference_genomes/human_index",
                  "panel": "reference_genomes/MARV_compare",
                  "downloads": "reference_genomes/MARV_downloads",
                  "outgroup": "reference_genomes/EF446131.1.fasta",
                  "nextclade_dataset": None},
    "algorithm": {"num_cores": None,
                  "reserve_cores": 2,
                  "size_ratio": 0.90,
                  "trim": {"min_qual": 20, "min_len": 50},
                  "variants": {"max_depth": 1000000},
                  "consensus": {"min_qual": 20, "freq_threshold": 0.7, "min_depth": 1,
                                "header": "{sample}"},
                  "msa": {"thorough": False},
                  "phylogeny": {"prefix": "marv_phylogeny", "model": "MFP", "bootstrap": 1000},
                  "references": {"min_length": 18000}},
    "resources": {"fastp": {"max_threads": 8},
                  "mafft": {"max_threads": 4},
                  "iqtree": {"cmd": "iqtree3"}},
}

# ## Retrieval functions

def load_config(config_file=None, project_dir=None):
    """Load YAML config file over the defaults, replacing environmental variables.
    """
    config = copy.deepcopy(DEFAULTS)
    if config_file:
        with open(config_file) as in_handle:
            user_config = yaml.safe_load(in_handle) or {}
        config = merge_configs(config, _expand_paths(user_config))
    # lowercase resource names, the preferred way to specify, for back-compatibility
    newr = {}
    for k, v in config["resources"].items():
        if k.lower() != k:
            newr[k.lower()] = v
    config["resources"].update(newr)
    if project_dir:
        config["dirs"]["project"] = project_dir
    config["dirs"]["project"] = os.path.abspath(config["dirs"]["project"])
    return config

def merge_configs(base, update):
    """Recursively merge two configurations, preferring definitions in `update`.
    """
    out = copy.deepcopy(base)
    for k, v in update.items():
        if k in out and isinstance(out[k], dict) and isinstance(v, dict):
            out[k] = merge_configs(out[k], v)
        else:
            out[k] = v
    return out

def _expand_paths(config):
    for field, setting in config.items():
        if isinstance(config[field], dict):
            config[field] = _expand_paths(config[field])
        else:
            config[field] = expand_path(setting)
    return config

def expand_path(path):
    """ Combines os.path.expandvars with replacing ~ with $HOME.
    """
    try:
        return os.path.expandvars(path.replace("~", "$HOME"))
    except AttributeError:
        return path

def get_path(config, keys):
    """Retrieve a configured path, resolved relative to the project directory.
    """
    val = tz.get_in(keys, config)
    if not val:
        return val
    return os.path.normpath(os.path.join(config["dirs"]["project"], val))

def get_results_dir(config, name):
    return os.path.join(get_path(config, ["dirs", "results"]), name)

def get_algorithm(name, config):
    return tz.get_in(["algorithm", name], config, {})

def get_resources(name, config):
    """Retrieve resources for a program, pulling from multiple config sources.
    """
    return tz.get_in(["resources", name], config,
                     tz.get_in(["resources", "default"], config, {})) or {}

def get_program(name, config, default=None):
    """Retrieve the full path to a program from the configuration.

    Uses the configured `cmd` for the program in `resources`, then programs
    installed next to the running interpreter (conda environments), then
    the PATH.
    """
    is_ok = lambda f: os.path.isfile(f) and os.access(f, os.X_OK)
    pconfig = get_resources(name, config)
    if isinstance(pconfig, str):
        program = pconfig
    else:
        program = pconfig.get("cmd", default or name)
    program = expand_path(program)
    if os.path.dirname(program):
        if is_ok(program):
            return os.path.abspath(program)
    else:
        # support conda installed programs
        if is_ok(os.path.join(os.path.dirname(sys.executable), program)):
            return os.path.join(os.path.dirname(sys.executable), program)
        for adir in os.environ.get("PATH", "").split(os.pathsep):
            if adir and is_ok(os.path.join(adir, program)):
                return os.path.join(adir, program)
    raise CmdNotFound("%s not found: checked %s in configuration, interpreter directory and PATH"
                      % (name, program))

def get_programs(names, config):
    """Resolve a set of required programs once, failing fast if any are missing.
    """
    return {name: get_program(name, config) for name in names}

def get_options(name, config):
    """Extra user supplied command line options for a program.
    """
    return [str(x) for x in get_resources(name, config).get("options", [])]

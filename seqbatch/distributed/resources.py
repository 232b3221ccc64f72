"""Estimate thread counts to hand to external tools.

Samples are processed one at a time, so parallelism only happens inside a
single tool invocation. The budget keeps a fixed headroom of cores for the
host and applies per-program ceilings for tools whose memory use scales
with threads.
"""
import os

from seqbatch.pipeline import config_utils

DEFAULT_RESERVE = 2

def thread_budget(available=None, reserve=DEFAULT_RESERVE, ceiling=None):
    """Bounded worker count from available cores.

    Reserves `reserve` cores for host overhead, never returns less than 1,
    and caps at `ceiling` when provided.
    """
    if available is None:
        available = os.cpu_count() or 1
    cores = max(1, int(available) - int(reserve))
    if ceiling:
        cores = min(cores, int(ceiling))
    return max(1, cores)

def get_cores(name, config):
    """Thread budget for a program using the algorithm and resource configuration.
    """
    algorithm = config.get("algorithm", {})
    ceiling = config_utils.get_resources(name, config).get("max_threads")
    return thread_budget(algorithm.get("num_cores"),
                         algorithm.get("reserve_cores", DEFAULT_RESERVE),
                         ceiling)

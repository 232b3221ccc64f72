#!/usr/bin/env python -Es
"""Run batch analysis stages for paired-end viral sequencing data.

Each stage discovers its samples from the outputs of the previous stage,
skips samples with complete outputs and continues past samples that fail.

Usage:
  seqbatch_run.py [<config_file>] [--stage STAGE ...] [--workdir DIR] [-n NUMCORES]
     --stage: trim, host, mapping, variants, consensus, coverage, multiqc,
              references, msa, phylogeny, clades or all (default)
     -n total number of cores available; 2 are reserved for the system

Exits non-zero only when a stage cannot start: a required program or
shared reference input is missing.
"""
import sys

from seqbatch.pipeline.main import main

if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))

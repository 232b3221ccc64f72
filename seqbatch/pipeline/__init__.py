"""High level code for driving a batch viral sequencing analysis.

This structures processing steps into the following modules:

  - main.py: Command line entry, running stages in order.
  - stages.py: Ordered registry of available stages.
  - executor.py: Run a single stage over all samples, skipping completed
                 outputs and isolating failures.
    - sample.py: Discover samples from input file names.
    - summary.py: Append-only summary tables keyed by sample.
  - config_utils.py: YAML configuration and program lookup.
"""

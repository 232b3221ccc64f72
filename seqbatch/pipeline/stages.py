"""Ordered registry of pipeline stages.
"""
import collections

from seqbatch.bam import trim
from seqbatch.ngsalign import bowtie2, minimap2
from seqbatch.phylogeny import iqtree, msa, nextclade, references
from seqbatch.qc import coverage, multiqc
from seqbatch.variation import ivar

STAGES = collections.OrderedDict([
    ("trim", trim.TrimStage),
    ("host", bowtie2.HostRemovalStage),
    ("mapping", minimap2.MappingStage),
    ("variants", ivar.VariantStage),
    ("consensus", ivar.ConsensusStage),
    ("coverage", coverage.CoverageStage),
    ("multiqc", multiqc.MultiqcStage),
    ("references", references.ReferenceSelectionStage),
    ("msa", msa.MsaStage),
    ("phylogeny", iqtree.PhylogenyStage),
    ("clades", nextclade.CladeStage),
])

def get_stages(names, config):
    """Resolve requested stage names, expanding `all` into the full ordered list.

    Clade assignment is only part of `all` when a nextclade dataset is configured.
    """
    out = []
    for name in names:
        if name == "all":
            out.extend(k for k in STAGES.keys()
                       if k != "clades" or nextclade.is_configured(config))
        elif name in STAGES:
            out.append(name)
        else:
            raise ValueError("Unexpected stage %s. Available stages: %s"
                             % (name, ", ".join(["all"] + list(STAGES.keys()))))
    final = []
    for x in out:
        if x not in final:
            final.append(x)
    return [(x, STAGES[x]) for x in final]

import os

import pytest
import yaml

from seqbatch.pipeline import main, stages

FAKE_FASTP = """
import gzip, json, sys
args = sys.argv[1:]
def opt(flag):
    return args[args.index(flag) + 1]
for flag in ["-o", "-O"]:
    with gzip.open(opt(flag), "wt") as out_handle:
        out_handle.write("@r1\\nACGT\\n+\\nIIII\\n")
for flag in ["-h", "-j"]:
    with open(opt(flag), "w") as out_handle:
        json.dump({"summary": {"before_filtering": {"total_reads": 4},
                               "after_filtering": {"total_reads": 4}}}, out_handle)
"""


@pytest.fixture
def config_file(project_dir, fake_tool):
    fname = os.path.join(project_dir, 'seqbatch.yaml')
    with open(fname, 'w') as out_handle:
        yaml.safe_dump({'resources': {'fastp': {'cmd': fake_tool('fastp', FAKE_FASTP)}}},
                       out_handle)
    return fname


def test_sample_failures_exit_zero(project_dir, config_file, fastq):
    raw = os.path.join(project_dir, 'raw_reads')
    fastq(os.path.join(raw, 'S1_R1.fastq.gz'))
    fastq(os.path.join(raw, 'S1_R2.fastq.gz'))
    fastq(os.path.join(raw, 'S2_R1.fastq.gz'))
    assert main.main([config_file, '--stage', 'trim', '--workdir', project_dir]) == 0
    assert os.path.exists(os.path.join(project_dir, 'logs', 'seqbatch.log'))


def test_missing_shared_input_exits_one(project_dir, config_file):
    assert main.main([config_file, '--stage', 'host', '--workdir', project_dir]) == 1


def test_run_main_returns_counters(project_dir, config_file, fastq):
    raw = os.path.join(project_dir, 'raw_reads')
    fastq(os.path.join(raw, 'S1_R1.fastq.gz'))
    fastq(os.path.join(raw, 'S1_R2.fastq.gz'))
    counts = main.run_main(project_dir, config_file, ['trim'])
    assert [(c.stage, c.processed) for c in counts] == [('trim', 1)]
    counts = main.run_main(project_dir, config_file, ['trim'])
    assert [(c.stage, c.skipped) for c in counts] == [('trim', 1)]


def test_parse_cl_args(project_dir, config_file):
    kwargs = main.parse_cl_args([config_file, '-s', 'trim', '-s', 'host', '-n', '16'])
    assert kwargs['stage_names'] == ['trim', 'host']
    assert kwargs['numcores'] == 16
    assert kwargs['config_file'] == config_file


def test_parse_cl_args_defaults_to_all(project_dir):
    kwargs = main.parse_cl_args([])
    assert kwargs['stage_names'] == ['all']
    assert kwargs['config_file'] is None


def test_unknown_stage_is_an_argument_error(project_dir):
    with pytest.raises(SystemExit):
        main.parse_cl_args(['--stage', 'assemble'])


class TestGetStages(object):

    def test_all_is_ordered_without_clades(self, config):
        names = [x[0] for x in stages.get_stages(['all'], config)]
        assert names == ['trim', 'host', 'mapping', 'variants', 'consensus', 'coverage',
                         'multiqc', 'references', 'msa', 'phylogeny']

    def test_all_includes_clades_with_dataset(self, config):
        config['reference']['nextclade_dataset'] = 'nextstrain/marburg'
        names = [x[0] for x in stages.get_stages(['all'], config)]
        assert names[-1] == 'clades'

    def test_requested_stages_deduplicated(self, config):
        names = [x[0] for x in stages.get_stages(['trim', 'trim', 'coverage'], config)]
        assert names == ['trim', 'coverage']

    def test_unknown_stage(self, config):
        with pytest.raises(ValueError):
            stages.get_stages(['assemble'], config)

import os

import pytest

from seqbatch.pipeline import config_utils, executor
from seqbatch.pipeline.sample import Sample
from seqbatch.variation import ivar

VARIANTS = ("REGION\tPOS\tREF\tALT\tREF_DP\tALT_DP\tALT_FREQ\tTOTAL_DP\tPVAL\tPASS\n"
            "MARV\t100\tA\tG\t2\t30\t0.9\t32\t0.0\tTRUE\n"
            "MARV\t250\tC\tT\t20\t3\t0.1\t23\t0.2\tFALSE\n"
            "MARV\t900\tG\tA\t0\t12\t1\t12\t0.0\tTRUE\n")


def test_count_variants(tmp_path):
    fname = tmp_path / 'S1_variants.tsv'
    fname.write_text(VARIANTS)
    assert ivar.count_variants(str(fname)) == (3, 2)


def test_count_variants_header_only(tmp_path):
    fname = tmp_path / 'S1_variants.tsv'
    fname.write_text(VARIANTS.splitlines(True)[0])
    assert ivar.count_variants(str(fname)) == (0, 0)


def test_rename_header(tmp_path):
    in_file = tmp_path / 'raw.fa'
    in_file.write_text('>Consensus_S1_threshold_0.7_quality_20\nACGTNN\nACGT\n')
    out_file = ivar.rename_header(str(in_file), str(tmp_path / 'S1.fa'),
                                  'S1 | Homo sapiens | Ethiopia | 2025')
    with open(out_file) as in_handle:
        lines = in_handle.read().splitlines()
    assert lines[0] == '>S1 | Homo sapiens | Ethiopia | 2025'
    assert ''.join(lines[1:]) == 'ACGTNNACGT'


class TestStages(object):

    @pytest.fixture
    def programs(self):
        return {'samtools': '/usr/bin/samtools', 'ivar': '/usr/bin/ivar'}

    @pytest.fixture
    def bam_sample(self, config):
        bam = os.path.join(config['dirs']['project'], 'results', '04_mapped_bam', 'S1.sorted.bam')
        os.makedirs(os.path.dirname(bam))
        with open(bam, 'w') as out_handle:
            out_handle.write('bam')
        return Sample('S1', bam, None)

    def test_variant_stage_needs_reference(self, config, programs):
        stage = ivar.VariantStage(config, programs)
        with pytest.raises(config_utils.BatchFatalError):
            stage.check_shared_inputs()

    def test_variant_command(self, config, programs, bam_sample, mocker):
        def fake_pipe(cmds, *args, **kwargs):
            prefix = cmds[1][cmds[1].index('-p') + 1]
            with open(prefix + '.tsv', 'w') as out_handle:
                out_handle.write(VARIANTS)
        run_pipe = mocker.patch('seqbatch.variation.ivar.do.run_pipe', side_effect=fake_pipe)
        stage = ivar.VariantStage(config, programs)
        row = stage.run(bam_sample, None)
        assert row == ['S1', 3, 2]
        mpileup, ivar_cmd = run_pipe.call_args[0][0]
        ref = stage.ref_file()
        assert mpileup == ['/usr/bin/samtools', 'mpileup', '-A', '-d', 1000000, '-B', '-Q', 0,
                           '-f', ref, bam_sample.in_file]
        assert ivar_cmd[:4] == ['/usr/bin/ivar', 'variants', '-r', ref]
        assert os.path.exists(stage.output_files(bam_sample)[0])

    def test_consensus_stage(self, config, programs, bam_sample, mocker):
        config['algorithm']['consensus']['header'] = '{sample} | Homo sapiens'

        def fake_pipe(cmds, *args, **kwargs):
            prefix = cmds[1][cmds[1].index('-p') + 1]
            with open(prefix + '.fa', 'w') as out_handle:
                out_handle.write('>Consensus_S1\nACGTNNNNAC\n')
        run_pipe = mocker.patch('seqbatch.variation.ivar.do.run_pipe', side_effect=fake_pipe)
        stage = ivar.ConsensusStage(config, programs)
        row = stage.run(bam_sample, None)
        assert row == ['S1', 10, 4, '40.00']
        mpileup, ivar_cmd = run_pipe.call_args[0][0]
        assert mpileup == ['/usr/bin/samtools', 'mpileup', '-A', '-Q', 0, bam_sample.in_file]
        assert ivar_cmd[-6:] == ['-q', 20, '-t', 0.7, '-m', 1]
        with open(stage.output_files(bam_sample)[0]) as in_handle:
            assert in_handle.readline().strip() == '>S1 | Homo sapiens'

    def test_consensus_tool_failure(self, config, bam_sample, fake_tool):
        config['resources']['samtools'] = {'cmd': fake_tool('samtools', 'print("MARV\\t1\\tA")')}
        config['resources']['ivar'] = {'cmd': fake_tool('ivar', """
            import sys
            sys.stdin.read()
            sys.exit(1)
            """)}
        counts = executor.run_stage(ivar.ConsensusStage, config)
        assert counts.outcomes == {'S1': executor.FAILED_TOOL_ERROR}
        assert not os.path.exists(os.path.join(config['dirs']['project'], 'results',
                                               '06_consensus', 'S1.fa'))

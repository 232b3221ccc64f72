import os

import pytest

from seqbatch.bam import ref
from seqbatch.ngsalign import bowtie2, minimap2
from seqbatch.pipeline import config_utils, executor
from seqbatch.pipeline.sample import Sample

PROGRAMS = {'bowtie2': '/usr/bin/bowtie2', 'samtools': '/usr/bin/samtools',
            'minimap2': '/usr/bin/minimap2'}


def write_reference(config):
    ref_file = config_utils.get_path(config, ['reference', 'viral'])
    os.makedirs(os.path.dirname(ref_file), exist_ok=True)
    with open(ref_file, 'w') as out_handle:
        out_handle.write('>MARV\nACGTACGTACGT\n')
    return ref_file


class TestHostRemoval(object):

    def test_missing_index_is_fatal(self, config):
        stage = bowtie2.HostRemovalStage(config, PROGRAMS)
        with pytest.raises(config_utils.BatchFatalError):
            stage.check_shared_inputs()

    def test_index_present(self, config):
        index = config_utils.get_path(config, ['reference', 'host_index'])
        os.makedirs(os.path.dirname(index))
        with open(index + '.1.bt2', 'w') as out_handle:
            out_handle.write('index')
        bowtie2.HostRemovalStage(config, PROGRAMS).check_shared_inputs()

    def test_discovers_trimmed_reads(self, config, fastq):
        clean = os.path.join(config['dirs']['project'], 'results', '02_clean_reads')
        fq1 = fastq(os.path.join(clean, 'S1_R1.trimmed.fastq.gz'))
        samples = bowtie2.HostRemovalStage(config, PROGRAMS).samples()
        assert samples == [Sample('S1', fq1, os.path.join(clean, 'S1_R2.trimmed.fastq.gz'))]

    def test_depletion_commands(self, config, fastq, mocker):
        clean = os.path.join(config['dirs']['project'], 'results', '02_clean_reads')
        s = Sample('S1', fastq(os.path.join(clean, 'S1_R1.trimmed.fastq.gz'), 10),
                   fastq(os.path.join(clean, 'S1_R2.trimmed.fastq.gz'), 10))

        def fake_pipe(cmds, *args, **kwargs):
            prefix = cmds[0][cmds[0].index('--un-conc') + 1]
            for i in [1, 2]:
                with open('%s.%s' % (prefix, i), 'w') as out_handle:
                    out_handle.write('@r\nACGT\n+\nIIII\n' * 4)
            with open(kwargs['stdout_file'], 'w') as out_handle:
                out_handle.write('bam')
        run_pipe = mocker.patch('seqbatch.ngsalign.bowtie2.do.run_pipe', side_effect=fake_pipe)

        def fake_run(cmd, *args, **kwargs):
            with open(kwargs['stdout_file'], 'w') as out_handle:
                out_handle.write('10 + 0 in total\n')
        mocker.patch('seqbatch.ngsalign.bowtie2.do.run', side_effect=fake_run)
        stage = bowtie2.HostRemovalStage(config, PROGRAMS)
        row = stage.run(s, None)
        assert row == ['S1', 10, 4, '40.00']
        bt2_cmd, samtools_cmd = run_pipe.call_args[0][0]
        for expected in ['--very-sensitive-local', '--score-min', 'L,0,-0.6', '--ma']:
            assert expected in bt2_cmd
        assert samtools_cmd[:2] == ['/usr/bin/samtools', 'view']
        assert all(os.path.getsize(f) > 0 for f in stage.output_files(s))
        assert stage.is_complete(s)


class TestMapping(object):

    def test_missing_reference_is_fatal(self, config):
        stage = minimap2.MappingStage(config, PROGRAMS)
        with pytest.raises(config_utils.BatchFatalError):
            stage.check_shared_inputs()

    def test_failed_faidx_is_fatal(self, config, mocker):
        write_reference(config)
        mocker.patch('seqbatch.bam.ref.do.run', side_effect=OSError('samtools missing'))
        with pytest.raises(config_utils.BatchFatalError):
            minimap2.MappingStage(config, PROGRAMS).check_shared_inputs()

    def test_existing_faidx_not_rebuilt(self, config, mocker):
        ref_file = write_reference(config)
        with open(ref_file + '.fai', 'w') as out_handle:
            out_handle.write('MARV\t12\t6\t12\t13\n')
        run = mocker.patch('seqbatch.bam.ref.do.run')
        assert ref.prep_reference(ref_file) == ref_file + '.fai'
        assert not run.called

    def test_gate_on_bam_index(self, config):
        stage = minimap2.MappingStage(config, PROGRAMS)
        s = Sample('S1', 'S1_1.nonhost.fastq.gz', 'S1_2.nonhost.fastq.gz')
        assert stage.output_files(s) == [os.path.join(stage.out_dir(), 'S1.sorted.bam.bai')]

    def test_empty_reads_are_missing_input(self, config, fastq):
        nonhost = os.path.join(config['dirs']['project'], 'results', '03_nonhuman_reads')
        fastq(os.path.join(nonhost, 'S1_1.nonhost.fastq.gz'), 0)
        fastq(os.path.join(nonhost, 'S1_2.nonhost.fastq.gz'), 0)
        stage = minimap2.MappingStage(config, PROGRAMS)
        s = stage.samples()[0]
        with pytest.raises(executor.MissingInputError):
            stage.check_inputs(s)

    def test_mapping_commands(self, config, fastq, mocker):
        ref_file = write_reference(config)
        nonhost = os.path.join(config['dirs']['project'], 'results', '03_nonhuman_reads')
        s = Sample('S1', fastq(os.path.join(nonhost, 'S1_1.nonhost.fastq.gz'), 5),
                   fastq(os.path.join(nonhost, 'S1_2.nonhost.fastq.gz'), 5))

        def fake_pipe(cmds, *args, **kwargs):
            out_file = cmds[1][cmds[1].index('-o') + 1]
            with open(out_file, 'w') as out_handle:
                out_handle.write('bam')
        run_pipe = mocker.patch('seqbatch.ngsalign.minimap2.do.run_pipe', side_effect=fake_pipe)
        index = mocker.patch('seqbatch.ngsalign.minimap2.bam.index')
        mocker.patch('seqbatch.ngsalign.minimap2.bam.count_mapped', return_value=8)
        stage = minimap2.MappingStage(config, PROGRAMS)
        row = stage.run(s, None)
        assert row == ['S1', 10, 8, '80.00']
        mm2_cmd, sort_cmd = run_pipe.call_args[0][0]
        assert mm2_cmd[:3] == ['/usr/bin/minimap2', '-ax', 'sr']
        assert mm2_cmd[-3:] == [ref_file, s.in_file, s.pair_file]
        assert sort_cmd[:2] == ['/usr/bin/samtools', 'sort']
        index.assert_called_once_with(stage.bam_file(s), '/usr/bin/samtools', None)

    def test_unreadable_reads_are_missing_input(self, config, fastq, mocker):
        nonhost = os.path.join(config['dirs']['project'], 'results', '03_nonhuman_reads')
        fastq(os.path.join(nonhost, 'S1_1.nonhost.fastq.gz'))
        fastq(os.path.join(nonhost, 'S1_2.nonhost.fastq.gz'))
        mocker.patch('seqbatch.ngsalign.minimap2.fastq.count_reads',
                     side_effect=ValueError('unknown problem parsing input'))
        stage = minimap2.MappingStage(config, PROGRAMS)
        with pytest.raises(executor.MissingInputError):
            stage.check_inputs(stage.samples()[0])

    def test_corrupt_sample_does_not_stop_batch(self, config, fastq, fake_tool, mocker):
        ref_file = write_reference(config)
        with open(ref_file + '.fai', 'w') as out_handle:
            out_handle.write('MARV\t12\t6\t12\t13\n')
        for program in ['minimap2', 'samtools']:
            config['resources'][program] = {'cmd': fake_tool(program, 'pass')}
        nonhost = os.path.join(config['dirs']['project'], 'results', '03_nonhuman_reads')
        for name in ['S1', 'S2']:
            for i in [1, 2]:
                fastq(os.path.join(nonhost, '%s_%s.nonhost.fastq.gz' % (name, i)))
        corrupt = os.path.join(nonhost, 'S1_1.nonhost.fastq.gz')

        def count_reads(in_file):
            if in_file == corrupt:
                raise ValueError('unknown problem parsing %s' % in_file)
            return 4
        mocker.patch('seqbatch.ngsalign.minimap2.fastq.count_reads', side_effect=count_reads)

        def fake_pipe(cmds, *args, **kwargs):
            out_file = cmds[1][cmds[1].index('-o') + 1]
            with open(out_file, 'w') as out_handle:
                out_handle.write('bam')
        mocker.patch('seqbatch.ngsalign.minimap2.do.run_pipe', side_effect=fake_pipe)

        def fake_index(in_bam, *args):
            with open(in_bam + '.bai', 'w') as out_handle:
                out_handle.write('bai')
        mocker.patch('seqbatch.ngsalign.minimap2.bam.index', side_effect=fake_index)
        mocker.patch('seqbatch.ngsalign.minimap2.bam.count_mapped', return_value=6)
        counts = executor.run_stage(minimap2.MappingStage, config)
        assert counts.outcomes == {'S1': executor.FAILED_MISSING_INPUT, 'S2': executor.SUCCEEDED}
        with open(os.path.join(config['dirs']['project'], 'results', '04_mapped_bam',
                               'mapping_summary.tsv')) as in_handle:
            assert in_handle.read().splitlines()[1:] == ['S2\t8\t6\t75.00']

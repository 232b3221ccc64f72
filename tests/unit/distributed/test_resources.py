import pytest

from seqbatch.distributed import resources


@pytest.mark.parametrize(('available', 'ceiling', 'expected'), [
    (1, None, 1),
    (2, None, 1),
    (3, None, 1),
    (10, None, 8),
    (10, 2, 2),
    (10, 8, 8),
    (64, 8, 8),
    (1, 4, 1),
])
def test_thread_budget(available, ceiling, expected):
    assert resources.thread_budget(available, ceiling=ceiling) == expected


def test_thread_budget_is_deterministic():
    assert resources.thread_budget(12) == resources.thread_budget(12)


def test_thread_budget_defaults_to_cpu_count(mocker):
    mocker.patch('seqbatch.distributed.resources.os.cpu_count', return_value=6)
    assert resources.thread_budget() == 4


def test_get_cores_applies_program_ceiling():
    config = {'algorithm': {'num_cores': 32, 'reserve_cores': 2},
              'resources': {'fastp': {'max_threads': 8}, 'mafft': {'max_threads': 4}}}
    assert resources.get_cores('fastp', config) == 8
    assert resources.get_cores('mafft', config) == 4
    assert resources.get_cores('samtools', config) == 30

#!/usr/bin/env python

"""Setup file and install script for batch viral sequencing analysis"""

import os
import subprocess

import setuptools

VERSION = '0.1.0'

# add version number and git commit hash of the current revision to version.py
try:
    git_run = subprocess.run(['git', 'rev-parse', '--short', 'HEAD'], stdout=subprocess.PIPE,
                             stderr=subprocess.DEVNULL)
    git_run.check_returncode()
except (subprocess.SubprocessError, OSError):
    commit_hash = ''
else:
    commit_hash = git_run.stdout.strip().decode()

here = os.path.dirname(os.path.abspath(__file__))
with open(os.path.join(here, 'seqbatch', 'pipeline', 'version.py'), 'w') as version_file:
    version_file.writelines([f'__version__ = "{VERSION}"\n',
                             f'__git_revision__ = "{commit_hash}"\n'])

# external tools (fastp, bowtie2, samtools, minimap2, ivar, multiqc, mafft,
# trimal, iqtree3, nextclade) are installed separately, for instance via Conda
setuptools.setup(name='seqbatch',
                 version=VERSION,
                 description='Idempotent batch pipeline for short-read viral genomics',
                 packages=setuptools.find_packages(exclude=['tests', 'tests.*']),
                 scripts=['scripts/seqbatch_run.py'],
                 python_requires='>=3.8',
                 install_requires=['logbook',
                                   'PyYAML',
                                   'toolz',
                                   'numpy',
                                   'biopython',
                                   'pysam'],
                 extras_require={'test': ['pytest', 'pytest-mock']})

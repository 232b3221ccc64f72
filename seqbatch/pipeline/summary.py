"""Append-only tab separated summary tables keyed by sample name.

Re-running a stage never duplicates rows: a sample already present in the
table is left alone.
"""
import csv
import os

from seqbatch import utils


class SummaryTable(object):
    """Tab separated table with a header and one row per sample.

    The first column holds the sample name used as the key.
    """
    def __init__(self, fname, header):
        self.fname = fname
        self.header = list(header)

    def samples(self):
        if not utils.file_exists(self.fname):
            return set()
        with open(self.fname) as in_handle:
            reader = csv.reader(in_handle, dialect="excel-tab")
            next(reader, None)
            return set(row[0] for row in reader if row)

    def has_sample(self, name):
        return name in self.samples()

    def rows(self):
        if not utils.file_exists(self.fname):
            return []
        with open(self.fname) as in_handle:
            reader = csv.reader(in_handle, dialect="excel-tab")
            next(reader, None)
            return [row for row in reader if row]

    def append(self, row):
        """Add a row for a new sample, returning False if the sample is already recorded.
        """
        row = [str(x) for x in row]
        assert len(row) == len(self.header), (self.header, row)
        if self.has_sample(row[0]):
            return False
        utils.safe_makedir(os.path.dirname(self.fname))
        write_header = not utils.file_exists(self.fname)
        with open(self.fname, "a") as out_handle:
            writer = csv.writer(out_handle, dialect="excel-tab", lineterminator="\n")
            if write_header:
                writer.writerow(self.header)
            writer.writerow(row)
        return True

"""Write stage outputs in a temporary directory and move them into place on success.

A sample whose tool fails or is interrupted never leaves a partial output at
its final path, so rerunning a stage never mistakes a half-written file for
completed work.
"""
import contextlib
import os
import shutil
import tempfile

import toolz as tz

from seqbatch import utils

TX_DIRNAME = "seqbatchtx"
FLAG_EXT = ".seqbatchtmp"


def tmpdir_base(config):
    """Directory holding transactional temporary directories.

    Uses `resources: tmp: dir` when configured, otherwise `seqbatchtx` in
    the working directory.
    """
    return tz.get_in(("resources", "tmp", "dir"), config) or os.path.join(os.getcwd(), TX_DIRNAME)

@contextlib.contextmanager
def tx_tmpdir(config=None):
    """Temporary directory for running a tool, removed on exit.
    """
    base = utils.safe_makedir(utils.get_abspath(tmpdir_base(config)))
    tmp_dir = tempfile.mkdtemp(dir=base)
    try:
        yield tmp_dir
    finally:
        utils.remove_safe(tmp_dir)

@contextlib.contextmanager
def file_transaction(*args):
    """Yield temporary names for output files, moving them to their final paths when done.

    An optional leading `config` dictionary selects the temporary directory.
    Output files can be given individually or as lists; a single file yields
    a name, several yield a tuple in the same order.
    """
    config, out_files = _split_args(args)
    with tx_tmpdir(config) as tmp_dir:
        tx_files = [os.path.join(tmp_dir, os.path.basename(f)) for f in out_files]
        yield tx_files[0] if len(tx_files) == 1 else tuple(tx_files)
        for tx_file, out_file in zip(tx_files, out_files):
            if os.path.exists(tx_file):
                utils.safe_makedir(os.path.dirname(out_file))
                _move_file_with_sizecheck(tx_file, out_file)
                # BAM indexes built inside the transaction travel with the BAM
                if tx_file.endswith(".bam") and os.path.exists(tx_file + ".bai"):
                    _move_file_with_sizecheck(tx_file + ".bai", out_file + ".bai")

def _split_args(args):
    config = args[0] if args and isinstance(args[0], dict) else None
    out_files = []
    for x in (args[1:] if config is not None else args):
        out_files.extend(x if isinstance(x, (list, tuple)) else [x])
    return config, [f for f in out_files if f]

def _move_file_with_sizecheck(tx_file, final_file):
    """Move a finished file into place, checking the size survives the move.

    A `.seqbatchtmp` flag file sits next to the destination while the move
    is in progress; one left behind marks an interrupted transfer.
    """
    flag_file = final_file + FLAG_EXT
    open(flag_file, "wb").close()
    want_size = os.path.getsize(tx_file)
    shutil.move(tx_file, final_file)
    got_size = os.path.getsize(final_file)
    assert want_size == got_size, (
        "Size changed moving %s (%s bytes) to %s (%s bytes)"
        % (tx_file, want_size, final_file, got_size))
    utils.remove_safe(flag_file)

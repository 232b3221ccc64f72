"""Centralize running of external commands, providing logging and tracking.

Commands are always argument lists. Two tool pipelines (`tool A | tool B`)
run through `run_pipe`, which manages each process and checks the exit
status of every stage, so a successful final stage never hides an earlier
failure.
"""
import collections
import contextlib
import os
import subprocess

from seqbatch import utils
from seqbatch.log import logger, logger_cl


def run(cmd, descr=None, log_file=None, checks=None, stdout_file=None, env=None, cwd=None):
    """Run the provided command, logging details and checking for errors.

    Output from the tool goes to `log_file` when provided, otherwise to the
    debug log. When `stdout_file` is set, standard output is written there
    and only standard error is logged.
    """
    if descr:
        logger.debug(descr)
    cmd = _normalize_cmd_args(cmd)
    logger_cl.debug(_cmd_str(cmd) + (" > %s" % stdout_file if stdout_file else ""))
    with _open_log(log_file, cmd) as log_handle:
        with _open_stdout(stdout_file) as out_handle:
            s = subprocess.Popen(
                cmd,
                stdout=out_handle if out_handle else subprocess.PIPE,
                stderr=subprocess.PIPE if out_handle else subprocess.STDOUT,
                close_fds=True,
                env=env,
                cwd=cwd,
            )
            stream = s.stderr if out_handle else s.stdout
            debug_stdout = collections.deque(maxlen=100)
            for line in iter(stream.readline, b""):
                _log_line(line, log_handle, debug_stdout)
            stream.close()
            exitcode = s.wait()
    if exitcode != 0:
        error_msg = _cmd_str(cmd)
        error_msg += "\n"
        error_msg += "".join(debug_stdout)
        raise subprocess.CalledProcessError(exitcode, error_msg)
    _run_checks(checks)

def run_pipe(cmds, descr=None, log_file=None, checks=None, stdout_file=None, env=None, cwd=None):
    """Run a pipeline of commands, each reading the previous one's standard output.

    Standard error of every stage goes to the log. Standard output of the
    last stage goes to `stdout_file`, or to the log when not provided.
    Raises CalledProcessError when any stage exits non-zero.
    """
    assert len(cmds) > 1, "Need at least two commands for a pipe: %s" % cmds
    if descr:
        logger.debug(descr)
    cmds = [_normalize_cmd_args(c) for c in cmds]
    logger_cl.debug(" | ".join(_cmd_str(c) for c in cmds) +
                    (" > %s" % stdout_file if stdout_file else ""))
    with _pipe_log(log_file, cmds) as (log_handle, log_name):
        with _open_stdout(stdout_file) as out_handle:
            procs = []
            try:
                for i, cmd in enumerate(cmds):
                    is_last = i == len(cmds) - 1
                    p = subprocess.Popen(
                        cmd,
                        stdin=procs[-1].stdout if procs else None,
                        stdout=(out_handle or log_handle) if is_last else subprocess.PIPE,
                        stderr=log_handle,
                        close_fds=True,
                        env=env,
                        cwd=cwd,
                    )
                    # allow upstream processes to receive SIGPIPE if a later stage exits
                    if procs:
                        procs[-1].stdout.close()
                    procs.append(p)
            except OSError:
                for p in procs:
                    p.kill()
                    p.wait()
                raise
            exitcodes = [p.wait() for p in procs]
        failed = [(cmd, code) for cmd, code in zip(cmds, exitcodes) if code != 0]
        if failed:
            log_handle.flush()
            error_msg = " | ".join(_cmd_str(c) for c in cmds)
            error_msg += "\n"
            error_msg += "".join("exit status %s: %s\n" % (code, _cmd_str(cmd)) for cmd, code in failed)
            error_msg += "".join(_tail(log_name))
            raise subprocess.CalledProcessError(failed[0][1], error_msg)
    _run_checks(checks)

def _normalize_cmd_args(cmd):
    assert not isinstance(cmd, str), "Commands must be argument lists: %s" % cmd
    return [str(x) for x in cmd]

def _cmd_str(cmd):
    return " ".join(cmd)

def _log_line(line, log_handle, debug_stdout):
    line = line.decode("utf-8", errors="replace")
    if line.rstrip():
        debug_stdout.append(line)
        if log_handle:
            log_handle.write(line)
        else:
            logger.debug(line.rstrip())

@contextlib.contextmanager
def _open_log(log_file, cmd):
    if log_file:
        utils.safe_makedir(os.path.dirname(log_file))
        with open(log_file, "a") as log_handle:
            log_handle.write("## %s\n" % _cmd_str(cmd))
            yield log_handle
    else:
        yield None

@contextlib.contextmanager
def _pipe_log(log_file, cmds):
    """Log handle for pipes; falls back to a temporary file to report errors.
    """
    header = "## %s\n" % " | ".join(_cmd_str(c) for c in cmds)
    if log_file:
        utils.safe_makedir(os.path.dirname(log_file))
        with open(log_file, "a") as log_handle:
            log_handle.write(header)
            log_handle.flush()
            yield log_handle, log_file
    else:
        with utils.tmpfile(prefix="seqbatch-pipe-", suffix=".log") as tmp_log:
            with open(tmp_log, "a") as log_handle:
                log_handle.write(header)
                log_handle.flush()
                yield log_handle, tmp_log
            for line in _tail(tmp_log, 20):
                logger.debug(line.rstrip())

@contextlib.contextmanager
def _open_stdout(stdout_file):
    if stdout_file:
        utils.safe_makedir(os.path.dirname(stdout_file))
        with open(stdout_file, "wb") as out_handle:
            yield out_handle
    else:
        yield None

def _tail(fname, n=100):
    with open(fname, errors="replace") as in_handle:
        return list(collections.deque(in_handle, maxlen=n))

def _run_checks(checks):
    # Check for problems not identified by shell return codes
    if checks:
        for check in checks:
            if not check():
                raise IOError("External command failed")

# checks for validating run completed successfully

def file_nonempty(target_file):
    def check():
        ok = utils.file_exists(target_file)
        if not ok:
            logger.info("Did not find non-empty output file {0}".format(target_file))
        return ok
    return check

def file_exists(target_file):
    def check():
        ok = os.path.exists(target_file)
        if not ok:
            logger.info("Did not find output file {0}".format(target_file))
        return ok
    return check

"""
Helpers for silencing native audio and gRPC chatter on stderr.
"""
import contextlib
import functools
import os

# Keep JACK from auto-starting and quiet the gRPC/absl loggers used by Google Cloud clients
os.environ.setdefault("JACK_NO_START_SERVER", "1")
os.environ.setdefault("GRPC_VERBOSITY", "ERROR")
os.environ.setdefault("GLOG_minloglevel", "2")


@contextlib.contextmanager
def suppressed_stderr():
    """
    Redirect stderr at the file descriptor level for the duration of the block.
    ALSA and PortAudio write straight to fd 2, so sys.stderr swapping is not enough.
    """
    try:
        saved_fd = os.dup(2)
        null_fd = os.open(os.devnull, os.O_WRONLY)
        os.dup2(null_fd, 2)
        os.close(null_fd)
    except OSError:
        saved_fd = None

    try:
        yield
    finally:
        if saved_fd is not None:
            os.dup2(saved_fd, 2)
            os.close(saved_fd)


def with_suppressed_audio_warnings(func):
    """Decorator form of suppressed_stderr()."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        with suppressed_stderr():
            return func(*args, **kwargs)
    return wrapper

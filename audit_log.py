import sys
import logging


class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"
    GREY = "\033[90m"


LEVEL_COLORS = {
    logging.DEBUG: Colors.GREY,
    logging.INFO: Colors.CYAN,
    logging.WARNING: Colors.YELLOW,
    logging.ERROR: Colors.RED,
    logging.CRITICAL: Colors.RED,
}


def colorize(text, color, bold=False):
    return f"{Colors.BOLD if bold else ''}{color}{text}{Colors.RESET}"


class ColorFormatter(logging.Formatter):
    def format(self, record):
        return colorize(f"-- {record.getMessage()}", LEVEL_COLORS.get(record.levelno, Colors.RESET))


def setup_logging(verbose=False):
    root = logging.getLogger()
    # drop our handler from an earlier call; leave foreign handlers alone
    for h in [h for h in root.handlers if isinstance(h.formatter, ColorFormatter)]:
        root.removeHandler(h)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColorFormatter())
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.INFO)


def progress(message, stream=None):
    # back to column 0 and clear the line, so long fetches keep a single status line
    stream = stream or sys.stdout
    stream.write("\x1b[0G\x1b[2K" + message)
    stream.flush()


def end_progress(stream=None):
    stream = stream or sys.stdout
    stream.write("\n")
    stream.flush()

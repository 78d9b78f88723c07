"""Standard exit codes for the callcov CLI.

Following shell conventions:
- 0: Success
- 1: General/analysis error
- 2: Command line usage error
- 130: Cancelled by SIGINT (128 + 2)
- 143: Cancelled by SIGTERM (128 + 15)
"""

import signal

EXIT_SUCCESS = 0
EXIT_ERROR = 1  # General/analysis error
EXIT_USAGE = 2  # Command line usage error
EXIT_SIGINT = 130  # 128 + SIGINT(2)
EXIT_SIGTERM = 143  # 128 + SIGTERM(15)


def exit_code_for_signal(signum) -> int:
    """Exit code for a run cancelled by ``signum`` (SIGINT if unknown)."""
    if signum == signal.SIGTERM:
        return EXIT_SIGTERM
    return EXIT_SIGINT

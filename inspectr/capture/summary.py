"""One-line, color-coded transaction summaries."""
import structlog

from ..models import Transaction

log = structlog.get_logger()

GREEN = "\x1b[42m"
BLUE = "\x1b[44m"
ORANGE = "\x1b[43m"
RED = "\x1b[41m"
RESET = "\x1b[0m"


def status_color(status: int) -> str:
    """ANSI background color for a status code, or "" outside the known ranges."""
    if 200 <= status < 300:
        return GREEN
    if 300 <= status < 400:
        return BLUE
    if 400 <= status < 500:
        return ORANGE
    if status >= 500:
        return RED
    return ""


def format_summary(transaction: Transaction, colors: bool = True) -> str:
    """
    Format ``<status> - <METHOD> <path> (<latency>ms) - <request timestamp>``.

    With ``colors`` the status is wrapped in its background color.
    """
    status = transaction.response.status_code
    color = status_color(status) if colors else ""
    rendered_status = f"{color}{status}{RESET}" if color else str(status)
    return (
        f"{rendered_status} - {transaction.method} {transaction.path} "
        f"({transaction.latency}ms) - {transaction.request.timestamp}"
    )


def print_summary(transaction: Transaction, colors: bool = True) -> Transaction:
    log.info(format_summary(transaction, colors=colors))
    return transaction

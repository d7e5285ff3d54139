import sys


# ANSI Escape Codes for Colors
class Color:
    BLUE = "\033[94m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    CYAN = "\033[96m"
    BOLD = "\033[1m"
    END = "\033[0m"


def _paint(color: str, msg: str) -> str:
    if not sys.stdout.isatty():
        return msg
    return f"{color}{msg}{Color.END}"


def info(msg: str):
    print(_paint(Color.CYAN, f"ℹ {msg}"))


def success(msg: str):
    print(_paint(Color.GREEN, f"✅ {msg}"))


def warning(msg: str):
    print(_paint(Color.YELLOW, f"⚠️ {msg}"))


def step(msg: str):
    print(_paint(Color.BLUE + Color.BOLD, f"➜ {msg}"))

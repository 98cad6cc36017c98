import logging, os

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DEFAULT_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def setup_logging():
    logger = logging.getLogger("aegis")
    logger.setLevel(getattr(logging, _DEFAULT_LEVEL, logging.INFO))

    # main.py installs the JSON handler on the root logger; only add a plain
    # console handler when nothing upstream will print our records
    root = logging.getLogger()
    if not root.handlers and not logger.handlers:
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(ch)
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    base = logging.getLogger("aegis")
    return base.getChild(name) if name else base


def mask_email(email: str | None) -> str:
    if not email or "@" not in email:
        return "***"
    user, domain = email.split("@", 1)
    head = user[:2]
    tail = user[-1:] if len(user) > 2 else ""
    return f"{head}***{tail}@{domain}"


logger = setup_logging()

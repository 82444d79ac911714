import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        force=True,
    )
    # SQL echo goes through its own switch
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def sanitize_for_log(value: str | None, limit: int = 200) -> str:
    if not value:
        return ""
    return value.replace("\r", " ").replace("\n", " ").replace("\t", " ")[:limit]

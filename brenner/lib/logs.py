import logging

FORMAT = "[%(name)s] %(levelname)s %(message)s"


def configure(level: str | int = "WARNING") -> None:
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING
    logging.basicConfig(level=level, format=FORMAT)
    logging.getLogger("brenner").setLevel(level)

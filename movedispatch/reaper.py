from .db import SessionLocal
from .logging import configure_logging
from .services.reaper import run_reaper


def main() -> None:
    configure_logging()
    run_reaper(SessionLocal)


if __name__ == "__main__":
    main()

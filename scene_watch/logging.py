import logging


def configure_logging(level: str = "INFO") -> None:
    """
    Configure root logging for the sensor process.
    """

    # Convert "INFO" -> logging.INFO etc.
    numeric_level = getattr(logging, str(level).upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

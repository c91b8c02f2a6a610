import logging
import sys
from typing import Optional

FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

def setup_logging(level:int = logging.INFO, log_file:Optional[str] = None) -> logging.Logger:
  """
  Configures the logger for the 'trxread' namespace.

  Args:
    level: Logging level (e.g. logging.DEBUG, logging.INFO)
    log_file: Optional path to also save logs to a file.
  """
  logger = logging.getLogger("trxread")
  logger.setLevel(level)

  # avoid duplicate output when called more than once
  if logger.hasHandlers():
    logger.handlers.clear()

  formatter = logging.Formatter(FORMAT, datefmt='%H:%M:%S')

  console_handler = logging.StreamHandler(sys.stderr)
  console_handler.setLevel(level)
  console_handler.setFormatter(formatter)
  logger.addHandler(console_handler)

  if log_file:
    file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

  return logger

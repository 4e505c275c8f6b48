"""
Catalog Configuration Utilities

Utility class for reading the INI configuration that holds deduplication
thresholds, provider settings, and datum computation options.
"""

import configparser
import logging
from pathlib import Path
from typing import Optional, Union


class Utils:
    """
    Utility class for configuration file management.

    Attributes
    ----------
    config_file : Path
        Path to the catalog configuration file (conf/tide_catalog.conf)

    Examples
    --------
    >>> import logging
    >>> logger = logging.getLogger(__name__)
    >>> params = Utils().read_config_section('thresholds', logger)
    >>> params['mutual_duplicate_km']
    '0.05'

    Notes
    -----
    The configuration file is expected to be in INI format with sections:

    [thresholds]
    canonical_proximity_km = 0.1
    ...

    [providers]
    trusted_provider = noaa
    ...

    [datums]
    step_hours = 1.0
    ...
    """

    def __init__(self, config_file: Optional[Union[str, Path]] = None):
        """
        Initialize Utils with path to configuration file.

        Without an explicit path, the config file is located relative to
        the project root: <project_root>/conf/tide_catalog.conf
        """
        if config_file is None:
            # Navigate from src/tide_catalog/ up to project root
            config_file = (
                Path(__file__).parent.parent.parent / 'conf/tide_catalog.conf'
            )
        self.config_file = Path(config_file).resolve()

    def get_config_file(self) -> Path:
        """Return the absolute path to the configuration file."""
        return self.config_file

    def read_config_section(
        self,
        section: str,
        logger: logging.Logger
    ) -> dict[str, str]:
        """
        Read a configuration file section and return as dictionary.

        Parameters
        ----------
        section : str
            Name of the section to read (e.g., 'thresholds', 'datums')
        logger : logging.Logger
            Logger instance for error reporting

        Returns
        -------
        Dict[str, str]
            Dictionary with configuration parameters from the section.
            Returns empty dict if section not found or file cannot be read.
        """
        params = {}
        config = configparser.ConfigParser()

        try:
            with open(self.config_file) as f:
                config.read_file(f)
            for option in config.options(section):
                params[option] = config.get(section, option)
        except configparser.NoSectionError as nse:
            logger.error(
                "No section '%s' found reading %s: %s",
                section, self.config_file, nse,
            )
        except OSError as ioe:
            logger.error(
                'Config file not found: %s: %s', self.config_file, ioe,
            )

        return params

    def validate_config(self, logger: logging.Logger) -> bool:
        """
        Validate that the configuration file exists and is parseable.

        Returns
        -------
        bool
            True if configuration file exists and is readable, False otherwise
        """
        if not self.config_file.is_file():
            logger.error('Configuration file not found: %s', self.config_file)
            return False

        try:
            config = configparser.ConfigParser()
            with open(self.config_file) as f:
                config.read_file(f)
        except configparser.Error as e:
            logger.error('Error reading configuration file: %s', e)
            return False

        logger.info('Configuration file validated: %s', self.config_file)
        return True


def parse_list_option(value: Union[str, list[str], None]) -> list[str]:
    """
    Parse a comma-separated config option into a list of lowercase strings.

    >>> parse_list_option('[noaa, NOAA_hist]')
    ['noaa', 'noaa_hist']
    """
    if value is None:
        return []
    if isinstance(value, list):
        return value
    cleaned = value.lower().replace('[', '').replace(']', '').replace(' ', '')
    return [item for item in cleaned.split(',') if item]

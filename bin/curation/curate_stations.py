"""
Run one curation pass over a batch of candidate stations.

Reads the canonical catalog and a candidate batch as JSON record lists,
deduplicates the batch, computes (or reuses) datums for the survivors, and
writes the admitted station records together with the ids of discarded
candidates whose persisted records are now stale.
"""
from __future__ import annotations

import argparse
import json
import logging.config
import os
import sys
from pathlib import Path

from tide_catalog.curation.catalog_update import curate_batch
from tide_catalog.curation.deduplication import DedupThresholds
from tide_catalog.exceptions import CatalogError
from tide_catalog.stations.station import station_from_record, to_record
from tide_catalog.tidal_analysis.datums import DatumOptions
from tide_catalog.utils import Utils


def _setup_logger(logger):
    """Initialize logger if not provided."""
    if logger is not None:
        return logger

    config_file = Utils().get_config_file()
    log_config_file = (Path(__file__).parent.parent.parent / 'conf/logging.conf').resolve()

    for file in [log_config_file, config_file]:
        if not os.path.isfile(file):
            sys.exit(-1)

    logging.config.fileConfig(log_config_file)
    logger = logging.getLogger('root')
    logger.info('Using config %s', config_file)
    logger.info('Using log config %s', log_config_file)
    return logger


def load_records(path, logger, provider=None):
    """Load a JSON list of station records."""
    if path is None:
        return []
    with open(path) as f:
        records = json.load(f)
    stations = [station_from_record(r, provider=provider) for r in records]
    logger.info('Loaded %d station records from %s', len(stations), path)
    return stations


def curate_stations(args, logger=None):
    """Run the curation pass described by the parsed command-line *args*."""
    logger = _setup_logger(logger)
    logger.info('--- Starting station curation ---')

    thresholds = DedupThresholds.from_config(logger)
    datum_options = DatumOptions.from_config(logger)

    try:
        canonical = load_records(args.Canonical, logger)
        candidates = load_records(args.Candidates, logger, provider=args.Provider)
        previous = load_records(args.Previous, logger)
    except (OSError, json.JSONDecodeError, CatalogError) as ex:
        logger.error('Could not load station records: %s', ex)
        sys.exit(-1)

    try:
        result = curate_batch(
            canonical,
            candidates,
            previous_records=previous,
            thresholds=thresholds,
            datum_options=datum_options,
            force_datums=args.force_datums,
            max_workers=args.Workers,
            logger=logger,
        )
    except CatalogError as ex:
        logger.error('Curation failed: %s', ex)
        sys.exit(-1)

    for phase, count in result.phase_counts.items():
        logger.info('%s: %d', phase, count)
    for error in result.errors:
        logger.warning('%s: %s', error.station_id, error.message)

    output = {
        'stations': [to_record(s) for s in result.stations],
        'discarded_ids': result.discarded_ids,
        'errors': [
            {'id': e.station_id, 'message': e.message} for e in result.errors
        ],
    }
    with open(args.Output, 'w') as f:
        json.dump(output, f, indent=2)
        f.write('\n')

    logger.info(
        'Wrote %d stations to %s (%d discarded, %d errors, %d datums reused)',
        len(result.stations), args.Output, len(result.discarded_ids),
        len(result.errors), result.reused_count,
    )
    logger.info('--- Station curation complete ---')
    return result


if __name__ == '__main__':
    parser = argparse.ArgumentParser(
        prog='python curate_stations.py',
        description='Deduplicate a station batch and compute synthetic datums',
    )
    parser.add_argument('-c', '--Canonical', required=True,
                        help='JSON file with the canonical station records')
    parser.add_argument('-i', '--Candidates', required=True,
                        help='JSON file with the candidate station records')
    parser.add_argument('-p', '--Previous', required=False,
                        help='JSON file with records persisted by a previous run')
    parser.add_argument('-o', '--Output', required=True, help='Output JSON file')
    parser.add_argument('--Provider', required=False, default=None,
                        help="Catalog namespace of the candidates, e.g. 'ticon'")
    parser.add_argument('--force-datums', action='store_true',
                        help='Recompute datums even when previous ones can be reused')
    parser.add_argument('-w', '--Workers', type=int, default=1,
                        help='Threads used for datum computation')

    curate_stations(parser.parse_args())

import argparse
import json
import logging
import sys

from .fetchers.Fetcher import NotFoundError, TransportError
from .harvester import Harvester, get_record
from ..metadata_mapper.mappers.mapper import MalformedIdentifierError

logger = logging.getLogger(__name__)


def render(record, output_format: str) -> str:
    if output_format == 'html':
        return record.to_html()
    if output_format == 'json':
        return json.dumps({
            "permalink": record.permalink,
            "collection": record.source.collection,
            "id": record.source.id,
            "metadata": record.to_dict(),
        })
    return record.to_xml()


def harvest_collection(args) -> int:
    if not args.collection:
        record = get_record(args.url, init_maps=not args.no_maps)
        print(render(record, args.format))
        return 1

    harvester = Harvester(args.url, init_maps=not args.no_maps)
    records = harvester.get_records(
        args.collection,
        max_records=args.max,
        from_date=args.from_date,
        until=args.until,
    )
    for record in records:
        print(render(record, args.format))
    return len(records)


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Harvest qualified Dublin Core records from CONTENTdm")
    parser.add_argument(
        'url', help='CONTENTdm installation url, or a single record url')
    parser.add_argument(
        'collection', nargs='?', help='collection alias to harvest')
    parser.add_argument('--max', type=int, help='maximum number of records')
    parser.add_argument('--from', dest='from_date', help='YYYY-MM-DD')
    parser.add_argument('--until', help='YYYY-MM-DD')
    parser.add_argument(
        '--format', choices=['xml', 'html', 'json'], default='xml')
    parser.add_argument(
        '--list-sets', action='store_true',
        help='list the collections at the installation and exit')
    parser.add_argument(
        '--no-maps', action='store_true',
        help='skip field map initialization, render every field')
    parser.add_argument(
        '-log',
        '--loglevel',
        default='warning',
        help='log level (default: warning)'
    )
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.loglevel.upper())

    try:
        if args.list_sets:
            harvester = Harvester(args.url, init_maps=False)
            for set_spec, set_name in harvester.collections().items():
                print(f"{set_spec:<20} {set_name}")
            return 0

        count = harvest_collection(args)
    except (TransportError, NotFoundError, MalformedIdentifierError) as e:
        logger.error(e)
        return 1

    logger.info(f"harvested {count} records from {args.url}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

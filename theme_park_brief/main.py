##########################################################################################
#
# Script name: main.py
#
# Description: CLI entrypoint for generating the daily theme park brief.
#
##########################################################################################

import argparse
import json
import logging
import os
import sys
from dataclasses import replace
from datetime import date

from .config import PipelineConfig, default_sources, load_pipeline_config
from .models import DailyBrief
from .pipeline import build_context, trigger_brief


# ****************************************************************************************
# Global data and configuration
# ****************************************************************************************

log = logging.getLogger(os.path.basename(sys.argv[0]))
log.setLevel(logging.DEBUG)
log.propagate = False
formatter = logging.Formatter(
    '%(asctime)-15s [%(funcName)25s:%(lineno)-5s] %(levelname)-8s %(message)s'
)

root_log = logging.getLogger()
root_log.setLevel(logging.DEBUG)


# ****************************************************************************************
# Functions
# ****************************************************************************************


def _attach_file_handler(path: str) -> None:
    if any(isinstance(handler, logging.FileHandler) for handler in root_log.handlers):
        return
    fh = logging.FileHandler(path, mode='w')
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(formatter)
    log.addHandler(fh)
    root_log.addHandler(fh)


def json_file_deliverer(output_path: str):
    def deliver(brief: DailyBrief) -> str:
        directory = os.path.dirname(output_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as handle:
            json.dump(brief.to_dict(), handle, indent=2, ensure_ascii=False)
        return output_path

    return deliver


def resolve_config(args: argparse.Namespace) -> PipelineConfig:
    if args.config and os.path.exists(args.config):
        config = load_pipeline_config(args.config)
    else:
        log.warning('Config file %s not found; using built-in sources.', args.config)
        config = PipelineConfig(sources=default_sources())
    overrides = {}
    if args.cache:
        overrides['cache_path'] = args.cache
    if args.top is not None:
        overrides['top_stories_count'] = args.top
    if args.also_noted is not None:
        overrides['also_noted_count'] = args.also_noted
    return replace(config, **overrides)


# ****************************************************************************************
# Handle the arguments
# ****************************************************************************************


def handle_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Generate the daily theme park news brief.')
    parser.add_argument('--config', default='config/sources.yaml', help='Path to source config YAML.')
    parser.add_argument('--output', default='out/brief.json', help='Where the brief JSON is written.')
    parser.add_argument('--cache', default=None, help='Path to the JSON seen-article cache.')
    parser.add_argument('--top', type=int, default=None, help='Number of top stories.')
    parser.add_argument('--also-noted', type=int, default=None, help='Number of also-noted stories.')
    parser.add_argument('--log-file', default='theme_park_brief.log', help='Debug log file.')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose output to stdout.')
    parser.add_argument('-q', '--quiet', action='store_true', help='Minimal stdout.')
    args = parser.parse_args(argv)

    _attach_file_handler(args.log_file)

    # Configure stdout logging based on arguments
    ch = logging.StreamHandler(sys.stdout)
    if args.verbose:
        ch.setLevel(logging.DEBUG)
    elif args.quiet:
        ch.setLevel(logging.ERROR)
    else:
        ch.setLevel(logging.INFO)
    ch.setFormatter(formatter)
    log.addHandler(ch)
    root_log.addHandler(ch)

    log.info('++++++++++++++++++++++++++++++++++++++++++++++')
    log.info('+  %s', os.path.basename(sys.argv[0]))
    log.info('+  Python Version: %s', sys.version.split()[0])
    log.info('+  Today is: %s', date.today())
    log.info('++++++++++++++++++++++++++++++++++++++++++++++')
    return args


# ****************************************************************************************
# Main
# ****************************************************************************************


def main(argv: list[str] | None = None) -> int:
    args = handle_args(argv)
    config = resolve_config(args)
    context = build_context(config)
    result = trigger_brief(context, json_file_deliverer(args.output))
    if not result.success:
        log.error('Brief failed: %s', result.error)
        return 1
    log.info('%s: %d article(s), delivered to %s', result.message, result.articles, result.delivery_id)
    return 0


if __name__ == '__main__':
    sys.exit(main())

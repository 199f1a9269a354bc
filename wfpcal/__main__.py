import logging
from pathlib import Path

import click

from . import get_wfpcal_config

## logging settings
# terminal output
stream = logging.StreamHandler()
stream.setLevel(logging.WARNING)
stream.addFilter(logging.Filter("wfpcal"))  # filter out msgs from other modules

# wfpcal.log output
logfile_FORMAT = "%(asctime)s | %(funcName)s |  %(levelname)s: %(message)s"
logfile = logging.FileHandler("wfpcal.log")
logfile.setLevel(logging.NOTSET)
logfile.addFilter(logging.Filter("wfpcal"))  # filter out msgs from other modules
logfile.setFormatter(logging.Formatter(logfile_FORMAT))

# global configs
FORMAT = "%(funcName)s: %(levelname)s: %(message)s"
logging.basicConfig(
    level=logging.NOTSET,
    format=FORMAT,
    datefmt="[%X]",
    handlers=[stream, logfile],
)

log = logging.getLogger(__name__)
cfg = get_wfpcal_config()


@click.group()
@click.option("--debug/--no-debug", default=False)
def cli(debug):
    """The wfpcal command creates data directories and processes profiler
    deployments
    """
    if debug:
        click.echo("Debug mode on (displaying all levels)")
        stream.setLevel(logging.NOTSET)
    else:
        click.echo("Debug mode off (displaying 'WARNING' and higher levels)")


@cli.command()
def init():
    """Setup data folder with appropriate subfolders"""

    log.info(f"Building default /data/ directories: \n {*cfg.dirs.keys(),}")

    for sub_dir in cfg.dirs.values():
        Path(sub_dir).mkdir(parents=True, exist_ok=True)


@cli.command()
@click.option(
    "-c",
    "--config",
    "config_file",
    type=click.Path(exists=True, dir_okay=False),
    default="wfpcal/deployment.yaml",
    show_default=True,
    help="YAML deployment metadata file.",
)
def process(config_file):
    """Process the CTD, engineering and current meter data of a deployment"""
    from .scripts.process_deployment import process_deployment

    log.info("Starting deployment processing run")
    process_deployment(config_file)


if __name__ == "__main__":
    cli()

#!/usr/bin/env python
import asyncio
import logging

import click
from dotenv import load_dotenv

from . import __version__
from .config.schema import DEFAULT_SCHEMA
from .exceptions import ProvisionerError
from .logging_setup import setup_logging
from .runner import run_provisioner

logger = logging.getLogger("local_path_provisioner")

_schema = DEFAULT_SCHEMA


@click.group()
@click.version_option(__version__, prog_name="local-path-provisioner")
@click.option("-d", "--debug", is_flag=True, envvar="RANCHER_DEBUG", help="enable debug logging level")
@click.option("--log-dir", default=None, hidden=True, help="Also write logs to a rotating file in this directory.")
@click.pass_context
def cli(ctx, debug, log_dir):
    """Local Path Provisioner"""
    setup_logging(level=logging.DEBUG if debug else logging.INFO, log_directory=log_dir)
    ctx.ensure_object(dict)["debug"] = debug


@cli.command()
@click.option(f"--{_schema.config.flag}", "config", default="",
              help="Required. Provisioner configuration file. Read from the local-path-config ConfigMap when empty.")
@click.option(f"--{_schema.provisioner_name.flag}", "provisioner_name",
              envvar=_schema.provisioner_name.env, default=_schema.provisioner_name.default, show_default=True,
              help="Required. Specify Provisioner name.")
@click.option(f"--{_schema.namespace.flag}", "namespace",
              envvar=_schema.namespace.env, default=_schema.namespace.default, show_default=True,
              help="Required. The namespace that Provisioner is running in.")
@click.option(f"--{_schema.helper_image.flag}", "helper_image",
              envvar=_schema.helper_image.env, default=_schema.helper_image.default, show_default=True,
              help="Required. The helper image used for create/delete directories on the host.")
@click.option(f"--{_schema.kubeconfig.flag}", "kubeconfig", default="",
              help="Paths to a kubeconfig. Only required when it is out-of-cluster.")
@click.pass_context
def start(ctx, config, provisioner_name, namespace, helper_image, kubeconfig):
    """Starts the provisioner and runs it until SIGINT/SIGTERM."""
    flags = {
        "config": config,
        "provisioner_name": provisioner_name,
        "namespace": namespace,
        "helper_image": helper_image,
        "kubeconfig": kubeconfig,
    }
    try:
        asyncio.run(run_provisioner(flags, schema=_schema))
    except ProvisionerError as e:
        logger.critical(f"Error starting daemon: {e}")
        ctx.exit(e.exit_code)
    except Exception as e:
        logger.critical(f"Critical error: {e}", exc_info=True)
        ctx.exit(1)


def main():
    load_dotenv()
    cli()


if __name__ == "__main__":
    main()

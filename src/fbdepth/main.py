#!/usr/bin/env python3
"""
fbdepth - Main Application Entry Point

Tiny tool to set the framebuffer bitdepth, rotation and hardware inversion
on eInk devices, only touching the hardware when something actually needs to
change.
"""

import argparse
import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .config.settings import Settings
from .display.framebuffer import LinuxFramebuffer
from .display.mock_framebuffer import MockFramebuffer
from .monitoring.prometheus_collector import ReconcileMetrics
from .reconcile.errors import FBDepthError, ParseError, UnsupportedOperation
from .reconcile.models import NightMode, TargetRequest
from .reconcile.parsing import (
    parse_bitdepth,
    parse_canonical_rotation,
    parse_native_rotation,
    parse_tristate,
)
from .reconcile.probe import StateProbe
from .reconcile.reconciler import Reconciler
from .reconcile.rotation import to_canonical


LOGGER_NAME = "fbdepth"
LOG_TAG = "[FBDepth] "


class _ArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that reports problems as ParseError instead of exiting."""

    def error(self, message):
        raise ParseError(message)


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = _ArgumentParser(
        prog='fbdepth',
        description=f'FBDepth {__version__}: Tiny tool to set the framebuffer bitdepth and/or rotation on eInk devices.',
        add_help=False,
    )
    parser.add_argument('-d', '--depth', type=parse_bitdepth, metavar='<8|16|24|32>',
                        help='Switch the framebuffer to the supplied bitdepth.')
    parser.add_argument('-h', '--help', action='store_true',
                        help='Show this help message.')
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument('-v', '--verbose', action='store_true',
                           help='Toggle printing diagnostic messages.')
    verbosity.add_argument('-q', '--quiet', action='store_true',
                           help='Toggle hiding diagnostic messages.')
    parser.add_argument('-g', '--get', action='store_true',
                        help='Just output the current bitdepth to stdout.')
    parser.add_argument('-G', '--getcode', action='store_true',
                        help='Just exit with the current bitdepth as exit code.')
    rotation = parser.add_mutually_exclusive_group()
    rotation.add_argument('-r', '--rota', type=parse_native_rotation, metavar='<-1|0|1|2|3>',
                          help='Switch the framebuffer to the supplied rotation (Linux FB convention). '
                               '-1 is a magic value matching the device-specific Portrait orientation.')
    rotation.add_argument('-R', '--canonicalrota', type=parse_canonical_rotation, metavar='<UR|CW|UD|CCW>',
                          help='Switch the framebuffer to the supplied canonical rotation, '
                               'translating it to the mangled native one.')
    parser.add_argument('-o', '--getrota', action='store_true',
                        help='Just output the current rotation to stdout.')
    parser.add_argument('-O', '--getrotacode', action='store_true',
                        help='Just exit with the current rotation as exit code.')
    parser.add_argument('-c', '--getcanonicalrota', action='store_true',
                        help='Just output the current rotation (converted to its canonical representation) to stdout.')
    parser.add_argument('-C', '--getcanonicalrotacode', action='store_true',
                        help='Just exit with the current rotation (converted to its canonical representation) as exit code.')
    parser.add_argument('-H', '--nightmode', type=parse_tristate, metavar='<on|off|toggle>',
                        help='Toggle hardware inversion (8bpp only, safely ignored otherwise).')
    return parser


class FBDepthApp:
    """Main fbdepth application class."""

    def __init__(self, settings: Optional[Settings] = None, framebuffer=None, stdout=None):
        """
        Initialize the application.

        Args:
            settings: Settings to use (loaded from the environment by default)
            framebuffer: Framebuffer backend to use instead of the configured one
            stdout: Stream query results are printed to
        """
        self.settings = settings or Settings()
        self.framebuffer = framebuffer
        self.stdout = stdout or sys.stdout
        self.parser = build_parser()
        self.metrics = ReconcileMetrics()

        env_file = os.getenv("FBDEPTH_ENV_FILE")
        if settings is None and env_file:
            self.settings.load_from_file(Path(env_file))

        self.logger = logging.getLogger(LOGGER_NAME)
        self._setup_logging(verbose=self.settings.debug_mode, quiet=False)

    def _setup_logging(self, verbose: bool, quiet: bool):
        """
        Configure the fbdepth logger.

        Diagnostics (DEBUG) go to stdout and only show up with -v; notices and
        warnings go to stderr with a tag, unless -q; errors always show up.
        """
        if verbose:
            level = logging.DEBUG
        elif quiet:
            level = logging.ERROR
        else:
            level = logging.INFO

        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

        handlers = []
        if self.settings.use_syslog:
            try:
                address = '/dev/log' if Path('/dev/log').exists() else ('localhost', 514)
                syslog_handler = logging.handlers.SysLogHandler(address=address)
                syslog_handler.setFormatter(logging.Formatter('fbdepth: ' + LOG_TAG + '%(message)s'))
                handlers.append(syslog_handler)
            except OSError:
                # Fall back to console logging
                pass

        if not handlers:
            stdout_handler = logging.StreamHandler(sys.stdout)
            stdout_handler.setLevel(logging.DEBUG)
            stdout_handler.addFilter(lambda record: record.levelno <= logging.DEBUG)
            stdout_handler.setFormatter(logging.Formatter('%(message)s'))

            stderr_handler = logging.StreamHandler(sys.stderr)
            stderr_handler.setLevel(logging.INFO)
            stderr_handler.setFormatter(logging.Formatter(LOG_TAG + '%(message)s'))
            handlers = [stdout_handler, stderr_handler]

        for handler in handlers:
            self.logger.addHandler(handler)
        self.logger.setLevel(level)
        self.logger.propagate = False

    def _create_framebuffer(self):
        """Create the configured framebuffer backend, unless one was injected."""
        if self.framebuffer is not None:
            return self.framebuffer
        if self.settings.backend == 'mock':
            self.logger.debug("Running with the simulated framebuffer")
            return MockFramebuffer.from_settings(self.settings, logger=self.logger)
        return LinuxFramebuffer(self.settings.fb_device, logger=self.logger)

    def _fail(self, error: FBDepthError, show_usage: bool = False) -> int:
        """Report a fatal error and return its exit code."""
        self.logger.error(f"{error}!")
        if show_usage:
            self.parser.print_help(self.stdout)
        return error.exit_code

    def _print_value(self, value: int):
        self.stdout.write(str(value))
        self.stdout.flush()

    def run(self, argv) -> int:
        """Run fbdepth with the given command line, returning the exit code."""
        try:
            args = self.parser.parse_args(argv)
        except ParseError as e:
            return self._fail(e, show_usage=True)

        if args.help:
            self.parser.print_help(self.stdout)
            return 0

        try:
            self.settings.validate()
            capabilities = self.settings.capabilities()
        except ValueError as e:
            self.logger.error(f"{e}!")
            return -1

        wants_canonical = args.canonicalrota is not None or args.getcanonicalrota or args.getcanonicalrotacode
        if wants_canonical and not capabilities.supports_canonical_rotation:
            return self._fail(
                UnsupportedOperation(f"Canonical rotations are not supported on {capabilities.family} devices"),
                show_usage=True,
            )

        rotation = args.canonicalrota if args.canonicalrota is not None else args.rota
        request = TargetRequest(
            bitdepth=args.depth,
            rotation=rotation,
            night_mode=args.nightmode or NightMode.UNSPECIFIED,
        )
        query_bpp = args.get or args.getcode
        query_rota = args.getrota or args.getrotacode
        query_canonical = args.getcanonicalrota or args.getcanonicalrotacode
        if request.is_empty and not (query_bpp or query_rota or query_canonical):
            return self._fail(ParseError("No action requested"), show_usage=True)

        # Enforce quiet when printing values
        verbose = args.verbose or (self.settings.debug_mode and not args.quiet)
        quiet = args.quiet
        if args.get or args.getrota or args.getcanonicalrota:
            verbose, quiet = False, True
        self._setup_logging(verbose=verbose, quiet=quiet)

        if args.depth == 24:
            self.logger.warning("24bpp handling appears to be broken *somewhere*, you probably don't want to use it!")

        framebuffer = self._create_framebuffer()
        rv = 0
        try:
            with framebuffer:
                if query_bpp or query_rota or query_canonical:
                    rv = self._query(framebuffer, capabilities, args)
                else:
                    reconciler = Reconciler(framebuffer, capabilities, logger=self.logger, metrics=self.metrics)
                    reconciler.run(request)
        except FBDepthError as e:
            rv = self._fail(e)

        if self.settings.metrics_textfile:
            self.metrics.write_textfile(self.settings.metrics_textfile)
        return rv

    def _query(self, framebuffer, capabilities, args) -> int:
        """Handle the get flags: print and/or return the current value, without touching anything."""
        snapshot = StateProbe(framebuffer, capabilities, self.logger).probe()
        self.metrics.record_snapshot(snapshot)

        if args.get or args.getcode:
            value = snapshot.bitdepth
            print_it, return_it = args.get, args.getcode
        elif args.getrota or args.getrotacode:
            value = snapshot.current_rotation
            print_it, return_it = args.getrota, args.getrotacode
        else:
            value = to_canonical(snapshot.current_rotation, capabilities).value
            print_it, return_it = args.getcanonicalrota, args.getcanonicalrotacode

        if print_it:
            self._print_value(value)
        return value if return_it else 0


def main(argv=None) -> int:
    """Main entry point."""
    app = FBDepthApp()
    return app.run(sys.argv[1:] if argv is None else argv)


def cli():
    """Console script entry point."""
    sys.exit(main())


if __name__ == '__main__':
    cli()

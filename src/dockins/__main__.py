"""Entry point for `python -m dockins` / `dockins`.

Subcommands (each wraps one driver operation):
    dockins version                  Print the engine server version
    dockins pull IMAGE               Pull an image
    dockins image-exists IMAGE       Exit 0 if the image is present locally
    dockins build PATH -t TAG        Build an image from a Dockerfile directory
    dockins volume-create            Create a volume and print its name
    dockins rm ID                    Force-remove a container
"""

from __future__ import annotations

import argparse
import sys

from dockins.config import get_settings
from dockins.drivers import create_driver
from dockins.errors import DockinsError
from dockins.logger import configure_logging
from dockins.types import ContainerHandle


def _container_id(value: str) -> str:
    if not value.strip():
        raise argparse.ArgumentTypeError("container id must not be empty")
    return value


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dockins",
        description="Container lifecycle driver for disposable build environments",
    )
    parser.add_argument("-H", "--host", help="Engine endpoint URI (overrides [engine] uri)")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Echo engine commands and output"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("version", help="Print the engine server version")
    pull = sub.add_parser("pull", help="Pull an image")
    pull.add_argument("image")
    exists = sub.add_parser("image-exists", help="Exit 0 if the image is present locally")
    exists.add_argument("image")
    build = sub.add_parser("build", help="Build an image from a Dockerfile directory")
    build.add_argument("path")
    build.add_argument("-t", "--tag", required=True)
    build.add_argument("--pull", action="store_true", help="Always pull the base image")
    sub.add_parser("volume-create", help="Create a volume and print its name")
    rm = sub.add_parser("rm", help="Force-remove a container")
    rm.add_argument("id", type=_container_id)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _parser().parse_args(argv)
    s = get_settings()
    configure_logging(s.logging.level)

    overrides: dict[str, object] = {}
    if args.host:
        overrides["uri"] = args.host
    if args.verbose:
        overrides["verbose"] = True
    if overrides:
        s = s.model_copy(update={"engine": s.engine.model_copy(update=overrides)})

    log = sys.stderr.buffer
    # Trampoline is only injected into build containers, which no subcommand launches.
    driver = create_driver(s, trampoline=b"")
    try:
        match args.command:
            case "version":
                print(driver.server_version(log=log))
                return 0
            case "pull":
                driver.pull_image(args.image, log=log)
                return 0
            case "image-exists":
                return 0 if driver.check_image_exists(args.image, log=log) else 1
            case "build":
                return driver.build_dockerfile(args.path, args.tag, args.pull, log=log)
            case "volume-create":
                print(driver.create_volume(log=log))
                return 0
            case "rm":
                return driver.remove_container(ContainerHandle(image="", id=args.id), log=log)
    except DockinsError as exc:
        print(f"dockins: {exc}", file=sys.stderr)
        return 1
    finally:
        driver.close()
    return 2


if __name__ == "__main__":
    sys.exit(main())

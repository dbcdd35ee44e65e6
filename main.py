"""rubber - review a GitHub pull request from the command line."""

import argparse
import sys

import config
from agent import run_pipeline
from errors import AuthError, FatalFetchError, NotFoundError
from models import PullRequestRef, ReviewPersona

EXIT_OK = 0
EXIT_FETCH_FAILED = 1
EXIT_INTERRUPTED = 130


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid PR number: {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"invalid PR number: {value!r}")
    return number


def _name(kind: str):
    def parse(value: str) -> str:
        try:
            return config.validate_name(value, kind)
        except ValueError as e:
            raise argparse.ArgumentTypeError(str(e)) from None

    return parse


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rubber",
        description=(
            "Fetch a GitHub pull request, run local checks over the added "
            "lines and ask an AI reviewer for a narrative review. Without a "
            "PR number, list the most recent pull requests."
        ),
    )
    parser.add_argument("owner", type=_name("owner"), help="repository owner")
    parser.add_argument("repo", type=_name("repository"), help="repository name")
    parser.add_argument(
        "pr_number",
        nargs="?",
        type=_positive_int,
        help="pull request number (omit to list recent PRs)",
    )
    parser.add_argument(
        "--linus-torvalds",
        action="store_true",
        help="deliver the AI review in Linus Torvalds' voice",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    ref = PullRequestRef(owner=args.owner, repo=args.repo, number=args.pr_number)
    persona = (
        ReviewPersona.LINUS_TORVALDS if args.linus_torvalds else ReviewPersona.DEFAULT
    )

    try:
        outcome = run_pipeline(ref, persona)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return EXIT_INTERRUPTED
    except AuthError as e:
        print(f"Authentication failed: {e}", file=sys.stderr)
        return EXIT_FETCH_FAILED
    except NotFoundError as e:
        print(f"Not found: {e}", file=sys.stderr)
        return EXIT_FETCH_FAILED
    except FatalFetchError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FETCH_FAILED

    sys.stdout.write(outcome.output)
    sys.stdout.flush()
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())

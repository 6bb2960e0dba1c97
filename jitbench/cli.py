#!/usr/bin/env python3
import argparse
import sys
import traceback

from .benchmark import TIMING_WINDOWS
from .errors import BenchError
from .kernels import variants
from .pipeline import RunConfig, run


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jitbench",
        description="JIT-compile a CUDA kernel variant with NVRTC and measure its steady-state launch time",
    )
    parser.add_argument("kernel_id", type=int, nargs="?", help="Kernel variant id (see --list)")
    parser.add_argument("array_size", type=int, nargs="?", help="Number of float64 elements")
    parser.add_argument("--seed", type=int, default=0, help="Seed for inputs and the scalar C (default: 0)")
    parser.add_argument("--timing", choices=TIMING_WINDOWS, default="enqueue",
                        help="Interval reported as Time: before or after the final synchronization")
    parser.add_argument("--list", action="store_true", help="List kernel variants and exit")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.list:
        for variant in variants():
            print(f"{variant.id}: {variant.name}")
        return 0

    if args.kernel_id is None or args.array_size is None:
        parser.error("the following arguments are required: kernel_id, array_size")

    try:
        config = RunConfig(
            variant_id=args.kernel_id,
            element_count=args.array_size,
            seed=args.seed,
            timing=args.timing,
            debug=args.debug,
        )
    except ValueError as e:
        parser.error(str(e))

    try:
        run(config)
    except BenchError as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.debug:
            traceback.print_exc()
        return e.exit_code
    except ImportError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
